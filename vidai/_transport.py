"""Pluggable HTTP transport and the browser header profile it sends."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol
from urllib.parse import urlsplit

import httpx

from .exceptions import TransientTransportError, VidaiError


_APP_ORIGIN = "https://app.runwayml.com"


@dataclass
class TransportResponse:
    status_code: int
    headers: Mapping[str, str]
    content: bytes


class Transport(Protocol):
    """Anything that can send one HTTP request and hand back status + body.

    Implementations raise :exc:`TransientTransportError` for timeouts and
    connection-level failures so the executor can retry them.
    """

    def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes] = None,
    ) -> TransportResponse: ...

    def close(self) -> None: ...


@dataclass(frozen=True)
class BrowserProfile:
    """Header set of one desktop browser build.

    Every value describes the same Chrome release so the request headers
    stay consistent with each other.
    """

    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
    )
    sec_ch_ua: str = '"Not/A)Brand";v="8", "Chromium";v="126", "Google Chrome";v="126"'
    platform: str = '"Windows"'
    accept_language: str = "en-US,en;q=0.9"
    origin: str = _APP_ORIGIN
    referer: str = _APP_ORIGIN + "/"

    def _common(self) -> dict[str, str]:
        return {
            "accept-language": self.accept_language,
            "priority": "u=1, i",
            "referer": self.referer,
            "sec-ch-ua": self.sec_ch_ua,
            "sec-ch-ua-mobile": "?0",
            "sec-ch-ua-platform": self.platform,
            "sec-fetch-dest": "empty",
            "sec-fetch-mode": "cors",
            "user-agent": self.user_agent,
        }

    def api_headers(self, token: str) -> dict[str, str]:
        headers = self._common()
        headers.update(
            {
                "accept": "application/json",
                "authorization": f"Bearer {token}",
                "content-type": "application/json",
                "origin": self.origin,
                "sec-fetch-site": "same-site",
            }
        )
        return headers

    def upload_headers(self, content_type: str, length: int) -> dict[str, str]:
        # Storage uploads never carry the bearer token.
        headers = self._common()
        headers.update(
            {
                "accept": "*/*",
                "content-length": str(length),
                "content-type": content_type,
                "origin": self.origin,
                "sec-fetch-site": "cross-site",
            }
        )
        return headers

    def download_headers(self, url: str) -> dict[str, str]:
        parts = urlsplit(url)
        headers = self._common()
        headers.update(
            {
                "accept": (
                    "text/html,application/xhtml+xml,application/xml;q=0.9,"
                    "image/avif,image/webp,image/apng,*/*;q=0.8"
                ),
                "origin": f"{parts.scheme}://{parts.netloc}",
                "sec-fetch-site": "same-site",
            }
        )
        return headers


@dataclass
class HttpxTransport:
    """Default :class:`Transport` backed by :class:`httpx.Client`.

    Args:
        timeout: Total per-request timeout in seconds.
        proxy: Optional upstream proxy URL, e.g. ``http://127.0.0.1:8080``.
        use_cookies: Keep cookies between requests. When ``False`` the jar
            is emptied after every response.
    """

    timeout: float = 120.0
    proxy: Optional[str] = None
    use_cookies: bool = True
    _client: httpx.Client = field(init=False, repr=False)

    def __post_init__(self) -> None:
        kwargs: dict[str, Any] = {"timeout": self.timeout, "follow_redirects": False}
        if self.proxy:
            kwargs["proxy"] = self.proxy
        self._client = httpx.Client(**kwargs)

    def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes] = None,
    ) -> TransportResponse:
        try:
            response = self._client.request(method, url, headers=dict(headers), content=body)
        except httpx.TimeoutException as exc:
            raise TransientTransportError(f"{method} {url} timed out: {exc}") from exc
        except httpx.NetworkError as exc:
            raise TransientTransportError(f"{method} {url} failed: {exc}") from exc
        except httpx.HTTPError as exc:
            raise VidaiError(f"couldn't {method} {url}: {exc}") from exc
        finally:
            if not self.use_cookies:
                self._client.cookies.clear()
        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            content=response.content,
        )

    def close(self) -> None:
        self._client.close()
