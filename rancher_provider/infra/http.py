from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

# ─── Errors ──────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class HttpError(Exception):
    status: int
    body: str

    def __str__(self) -> str:
        return f"HTTP {self.status}: {self.body}"


# ─── Client ──────────────────────────────────────────────────────────


class HttpClient:
    """Synchronous JSON client over a single ``httpx.Client`` connection pool.

    Status 0 in an HttpError means the request never got a response
    (connection refused, DNS failure, read timeout).
    """

    def __init__(
        self,
        base_url: str,
        auth: tuple[str, str] | None = None,
        *,
        timeout: float = 30,
        default_headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._log = logger.bind(component="http")
        self._client = httpx.Client(
            base_url=self._base_url,
            auth=auth,
            timeout=timeout,
            headers={"Accept": "application/json", **(default_headers or {})},
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | list[Any] | None = None,
        params: dict[str, Any] | None = None,
        allow_404: bool = False,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Returns None for empty bodies, and for 404 responses when
        ``allow_404`` is set.
        """
        self._log.debug("{method} {path}", method=method, path=path)

        try:
            resp = self._client.request(method, path, json=json, params=params)
        except httpx.RequestError as e:
            raise HttpError(status=0, body=str(e)) from e

        if resp.status_code == 404 and allow_404:
            return None

        if resp.status_code >= 400:
            self._log.warning(
                "HTTP {status} from {url}: {body}",
                status=resp.status_code, url=str(resp.url), body=resp.text[:500],
            )
            raise HttpError(status=resp.status_code, body=resp.text)

        return resp.json() if resp.content else None

    # ─── Lifecycle ───────────────────────────────────────────────────

    def close(self) -> None:
        if not self._client.is_closed:
            self._log.debug("Closing HTTP client")
            self._client.close()

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()
