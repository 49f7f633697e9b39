"""HTTP client for the Rancher v2-beta API.

Uses httpx for synchronous requests authenticated with an API key pair.
Collections hang off the client the way the Rancher SDKs expose them:

    with RancherClient("https://rancher.example.com/v2-beta/projects/1a5", key, secret) as client:
        volume = client.volume.by_id("1v12")
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import httpx
from loguru import logger

from rancher_provider.errors import TransportError
from rancher_provider.infra.http import HttpClient, HttpError
from rancher_provider.infra.retry import on_status_code, retry

from .types import Volume, VolumeCreate, VolumePatch, VolumeResponse

TRANSIENT_STATUS = (429, 502, 503, 504)
REJECTED_STATUS = (429, 503)


class RancherClient:
    """Client scoped to one API base URL (global or one environment)."""

    def __init__(
        self,
        base_url: str,
        access_key: str = "",
        secret_key: str = "",
        *,
        timeout: float = 30,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        auth = (access_key, secret_key) if access_key else None
        self._http = HttpClient(
            base_url,
            auth,
            timeout=timeout,
            default_headers={"Content-Type": "application/json"},
            transport=transport,
        )
        self._sleep = sleep
        self._log = logger.bind(component="client", base_url=self._http.base_url)
        self.volume = VolumeClient(self)

    @property
    def base_url(self) -> str:
        return self._http.base_url

    def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        allow_404: bool = False,
        retry_on: tuple[int, ...] = (),
    ) -> Any:
        """Send one API request, retrying on the ``retry_on`` statuses."""
        send = self._send
        if retry_on:
            send = retry(
                on=on_status_code(*retry_on), max_attempts=3, base_delay=1.0, sleep=self._sleep
            )(send)
        return send(method, path, json=json, params=params, allow_404=allow_404)

    def _send(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None,
        params: dict[str, Any] | None,
        allow_404: bool,
    ) -> Any:
        try:
            return self._http.request(method, path, json=json, params=params, allow_404=allow_404)
        except HttpError as e:
            self._log.warning(
                "API error {method} {path}: {status}",
                method=method, path=path, status=e.status,
            )
            raise TransportError(
                f"Rancher API error {e.status} on {method} {path}: {e.body}",
                status=e.status,
                body=e.body,
            ) from e

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> RancherClient:
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()


class VolumeClient:
    """Operations on the ``volumes`` collection.

    Reads and the in-place update are retried on every transient status.
    POSTs are retried only on statuses where Rancher turned the request away
    unprocessed: a 502 or 504 may hide a volume that was created anyway.
    """

    def __init__(self, client: RancherClient) -> None:
        self._client = client

    def create(self, spec: VolumeCreate) -> Volume:
        data: VolumeResponse | None = self._client.request(
            "POST", "/volumes", json=dict(spec), retry_on=REJECTED_STATUS
        )
        if not data:
            raise TransportError("Failed to create volume: empty response")
        return Volume.from_api(data)

    def by_id(self, volume_id: str) -> Volume | None:
        """Fetch a volume. Returns None when it does not exist."""
        data: VolumeResponse | None = self._client.request(
            "GET", f"/volumes/{volume_id}", allow_404=True, retry_on=TRANSIENT_STATUS
        )
        return Volume.from_api(data) if data else None

    def update(self, volume: Volume, patch: VolumePatch) -> Volume:
        data: VolumeResponse | None = self._client.request(
            "PUT", f"/volumes/{volume.id}", json=dict(patch), retry_on=TRANSIENT_STATUS
        )
        if not data:
            raise TransportError(f"Failed to update volume {volume.id}: empty response")
        return Volume.from_api(data)

    def action_remove(self, volume: Volume) -> Volume | None:
        data: VolumeResponse | None = self._client.request(
            "POST", f"/volumes/{volume.id}", params={"action": "remove"}, retry_on=REJECTED_STATUS
        )
        return Volume.from_api(data) if data else None


__all__ = ["REJECTED_STATUS", "RancherClient", "TRANSIENT_STATUS", "VolumeClient"]
