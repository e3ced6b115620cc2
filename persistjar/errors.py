class JarError(Exception):
    """Base error for persistjar."""


class NotInitializedError(JarError):
    """Raised when the jar is used before init() was called."""


class MalformedCookie(JarError, ValueError):
    """Raised when a Set-Cookie value cannot become a cookie record."""


class InvalidURL(JarError, ValueError):
    """Raised for request URLs that are not http or https."""


class StorageError(JarError):
    """Raised when a storage backend fails to read or write."""
