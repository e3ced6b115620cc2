from __future__ import annotations

from .jar import PersistentCookieJar


def _has_header(headers: dict[str, str], name: str) -> bool:
    return name.title() in {k.title() for k in headers}


class Session:
    """
    Session that runs every request of a transport through a cookie jar.

    The transport needs ``request(method, url, headers=..., **kwargs)``
    returning a response with ``raw_headers`` as (name, value) pairs.

    Args:
        transport: HTTP client that actually sends requests.
        jar: Initialized jar shared with the rest of the application.
    """

    def __init__(self, transport, jar: PersistentCookieJar) -> None:
        self.transport = transport
        self.cookies = jar

    def request(
        self, method: str, url: str, headers: dict[str, str] | None = None, **kwargs
    ):
        hdrs = dict(headers or {})
        # Attach Cookie header unless the caller set one.
        if not _has_header(hdrs, "Cookie"):
            cookie_header = self.cookies.cookie_header(url).unwrap()
            if cookie_header:
                hdrs["Cookie"] = cookie_header

        resp = self.transport.request(method, url, headers=hdrs, **kwargs)
        # Capture Set-Cookie
        self.cookies.save_from_headers(url, resp.raw_headers).unwrap()
        return resp

    def get(self, url: str, headers: dict[str, str] | None = None, **kwargs):
        return self.request("GET", url, headers=headers, **kwargs)

    def post(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        data=None,
        **kwargs,
    ):
        return self.request("POST", url, headers=headers, data=data, **kwargs)

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> Session:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class AsyncSession:
    """
    Async counterpart of Session for transports with a coroutine ``request``.

    Jar operations are short and bounded, so they run inline on the loop.
    """

    def __init__(self, transport, jar: PersistentCookieJar) -> None:
        self.transport = transport
        self.cookies = jar

    async def request(
        self, method: str, url: str, headers: dict[str, str] | None = None, **kwargs
    ):
        hdrs = dict(headers or {})
        if not _has_header(hdrs, "Cookie"):
            cookie_header = self.cookies.cookie_header(url).unwrap()
            if cookie_header:
                hdrs["Cookie"] = cookie_header

        resp = await self.transport.request(method, url, headers=hdrs, **kwargs)
        self.cookies.save_from_headers(url, resp.raw_headers).unwrap()
        return resp

    async def get(self, url: str, headers: dict[str, str] | None = None, **kwargs):
        return await self.request("GET", url, headers=headers, **kwargs)

    async def post(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        data=None,
        **kwargs,
    ):
        return await self.request("POST", url, headers=headers, data=data, **kwargs)

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> AsyncSession:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
