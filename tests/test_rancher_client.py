from __future__ import annotations

import base64
import json

import httpx
import pytest

from rancher_provider.errors import TransportError
from rancher_provider.infra.http import HttpClient, HttpError
from rancher_provider.rancher import RancherClient, Volume

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]

BASE_URL = "http://rancher.test/v2-beta/projects/1a5"

VOLUME_JSON = {
    "id": "1v12",
    "type": "volume",
    "name": "foo",
    "description": "volume test",
    "driver": "rancher-nfs",
    "accountId": "1a5",
    "state": "inactive",
    "removed": None,
    "actions": {"remove": f"{BASE_URL}/volumes/1v12?action=remove"},
}


class Recorder:
    """MockTransport handler replaying queued responses and recording requests."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def client_for(recorder: Recorder, **kwargs) -> RancherClient:
    return RancherClient(BASE_URL, transport=httpx.MockTransport(recorder), **kwargs)


@pytest.fixture
def no_sleep() -> list[float]:
    return []


class TestVolumeFromApi:
    def test_maps_fields(self):
        v = Volume.from_api(VOLUME_JSON)
        assert v.id == "1v12"
        assert v.state == "inactive"
        assert v.account_id == "1a5"
        assert v.driver == "rancher-nfs"
        assert "remove" in v.actions

    def test_null_fields_become_empty(self):
        v = Volume.from_api({"id": "1v1", "state": "creating", "description": None, "accountId": None})
        assert v.description == ""
        assert v.account_id == ""
        assert v.removed is None


class TestVolumeClient:
    def test_create_posts_body(self):
        rec = Recorder(httpx.Response(201, json={**VOLUME_JSON, "state": "requested"}))
        with client_for(rec) as client:
            v = client.volume.create({"name": "foo", "driver": "rancher-nfs"})

        assert v.state == "requested"
        [req] = rec.requests
        assert req.method == "POST"
        assert req.url.path == "/v2-beta/projects/1a5/volumes"
        assert json.loads(req.content) == {"name": "foo", "driver": "rancher-nfs"}

    def test_by_id(self):
        rec = Recorder(httpx.Response(200, json=VOLUME_JSON))
        with client_for(rec) as client:
            v = client.volume.by_id("1v12")

        assert v is not None
        assert v.name == "foo"
        assert rec.requests[0].url.path == "/v2-beta/projects/1a5/volumes/1v12"

    def test_by_id_not_found_returns_none(self):
        rec = Recorder(httpx.Response(404, json={"type": "error", "status": 404}))
        with client_for(rec) as client:
            assert client.volume.by_id("nope") is None

    def test_update_puts_patch(self):
        rec = Recorder(httpx.Response(200, json={**VOLUME_JSON, "name": "foo2"}))
        with client_for(rec) as client:
            v = client.volume.update(Volume.from_api(VOLUME_JSON), {"name": "foo2", "description": ""})

        assert v.name == "foo2"
        req = rec.requests[0]
        assert req.method == "PUT"
        assert json.loads(req.content) == {"name": "foo2", "description": ""}

    def test_action_remove(self):
        rec = Recorder(httpx.Response(202, json={**VOLUME_JSON, "state": "removing"}))
        with client_for(rec) as client:
            v = client.volume.action_remove(Volume.from_api(VOLUME_JSON))

        assert v is not None and v.state == "removing"
        req = rec.requests[0]
        assert req.method == "POST"
        assert req.url.path == "/v2-beta/projects/1a5/volumes/1v12"
        assert req.url.params["action"] == "remove"

    def test_action_remove_empty_body(self):
        rec = Recorder(httpx.Response(204))
        with client_for(rec) as client:
            assert client.volume.action_remove(Volume.from_api(VOLUME_JSON)) is None


class TestErrors:
    def test_server_error_becomes_transport_error(self):
        rec = Recorder(httpx.Response(500, text="internal server error"))
        with client_for(rec) as client, pytest.raises(TransportError) as exc_info:
            client.volume.by_id("1v12")

        assert exc_info.value.status == 500
        assert exc_info.value.body == "internal server error"
        assert isinstance(exc_info.value.__cause__, HttpError)
        assert len(rec.requests) == 1

    def test_connection_error_has_status_zero(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with RancherClient(BASE_URL, transport=httpx.MockTransport(refuse)) as client:
            with pytest.raises(TransportError) as exc_info:
                client.volume.by_id("1v12")

        assert exc_info.value.status == 0
        assert "connection refused" in exc_info.value.body

    def test_transient_status_is_retried(self, no_sleep: list[float]):
        rec = Recorder(
            httpx.Response(503, text="unavailable"),
            httpx.Response(200, json=VOLUME_JSON),
        )
        with client_for(rec, sleep=no_sleep.append) as client:
            v = client.volume.by_id("1v12")

        assert v is not None
        assert len(rec.requests) == 2
        assert len(no_sleep) == 1

    def test_transient_status_gives_up(self, no_sleep: list[float]):
        rec = Recorder(httpx.Response(429, text="slow down"))
        with client_for(rec, sleep=no_sleep.append) as client, pytest.raises(TransportError) as exc_info:
            client.volume.by_id("1v12")

        assert exc_info.value.status == 429
        assert len(rec.requests) == 3
        assert len(no_sleep) == 2

    @pytest.mark.parametrize("status", [502, 504])
    def test_gateway_error_on_create_is_not_retried(self, no_sleep: list[float], status: int):
        rec = Recorder(
            httpx.Response(status, text="gateway"),
            httpx.Response(201, json={**VOLUME_JSON, "id": "1v13", "state": "requested"}),
        )
        with client_for(rec, sleep=no_sleep.append) as client, pytest.raises(TransportError) as exc_info:
            client.volume.create({"name": "foo", "driver": "rancher-nfs"})

        assert exc_info.value.status == status
        assert [r.method for r in rec.requests] == ["POST"]
        assert no_sleep == []

    def test_rejected_create_is_retried(self, no_sleep: list[float]):
        rec = Recorder(
            httpx.Response(503, text="unavailable"),
            httpx.Response(201, json={**VOLUME_JSON, "state": "requested"}),
        )
        with client_for(rec, sleep=no_sleep.append) as client:
            v = client.volume.create({"name": "foo", "driver": "rancher-nfs"})

        assert v.id == "1v12"
        assert len(rec.requests) == 2
        assert len(no_sleep) == 1

    def test_gateway_error_on_remove_is_not_retried(self, no_sleep: list[float]):
        rec = Recorder(httpx.Response(504, text="gateway timeout"), httpx.Response(204))
        with client_for(rec, sleep=no_sleep.append) as client, pytest.raises(TransportError):
            client.volume.action_remove(Volume.from_api(VOLUME_JSON))

        assert len(rec.requests) == 1

    def test_gateway_error_on_read_is_retried(self, no_sleep: list[float]):
        rec = Recorder(httpx.Response(502, text="bad gateway"), httpx.Response(200, json=VOLUME_JSON))
        with client_for(rec, sleep=no_sleep.append) as client:
            assert client.volume.by_id("1v12") is not None

        assert len(rec.requests) == 2
        assert len(no_sleep) == 1


class TestAuth:
    def test_basic_auth_with_key_pair(self):
        rec = Recorder(httpx.Response(200, json=VOLUME_JSON))
        with client_for(rec, access_key="ak", secret_key="sk") as client:
            client.volume.by_id("1v12")

        expected = base64.b64encode(b"ak:sk").decode()
        assert rec.requests[0].headers["Authorization"] == f"Basic {expected}"

    def test_anonymous_without_access_key(self):
        rec = Recorder(httpx.Response(200, json=VOLUME_JSON))
        with client_for(rec) as client:
            client.volume.by_id("1v12")

        assert "Authorization" not in rec.requests[0].headers
        assert rec.requests[0].headers["Accept"] == "application/json"


class TestHttpClient:
    def test_base_url_strips_trailing_slash(self):
        with HttpClient("http://rancher.test/v2-beta/", transport=httpx.MockTransport(Recorder(httpx.Response(204)))) as http:
            assert http.base_url == "http://rancher.test/v2-beta"

    def test_404_without_allow_raises(self):
        rec = Recorder(httpx.Response(404, text="missing"))
        with HttpClient("http://rancher.test", transport=httpx.MockTransport(rec)) as http:
            with pytest.raises(HttpError) as exc_info:
                http.request("GET", "/volumes/x")

        assert exc_info.value.status == 404
        assert str(exc_info.value) == "HTTP 404: missing"

    def test_close_is_idempotent(self):
        http = HttpClient("http://rancher.test", transport=httpx.MockTransport(Recorder(httpx.Response(204))))
        http.close()
        http.close()
