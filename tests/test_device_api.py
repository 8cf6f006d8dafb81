from __future__ import annotations

import json

import httpx
import pytest

from core.device_api import ContractError, DeviceClient, HTTPError, NetworkError
from core.models import AddonsConfig

from conftest import make_device_payload


def _client(handler) -> DeviceClient:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return DeviceClient(base_url="http://device.test/", http=http)


def test_get_addons_options_parses_record_pins_and_catalog():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert str(request.url) == "http://device.test/api/getAddonsOptions"
        return httpx.Response(200, json=make_device_payload(turboPin=5))

    options = _client(handler).get_addons_options()
    assert options.config.turbo_pin == 5
    assert options.config.turbo_shot_count == 20
    assert options.used_pins == [0, 1, 2, 3]
    assert [s.name for s in options.catalog] == ["Mario", "Glitchy"]
    assert options.catalog[0].tone_duration == 120


def test_get_addons_options_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route to host", request=request)

    with pytest.raises(NetworkError):
        _client(handler).get_addons_options()


def test_get_addons_options_http_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with pytest.raises(HTTPError) as ei:
        _client(handler).get_addons_options()
    assert ei.value.status_code == 500
    assert ei.value.body == "boom"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json=[1, 2, 3]),
        httpx.Response(200, json={"turboPin": "abc"}),
        httpx.Response(200, json={"buzzerSongs": [{"name": "x"}]}),
    ],
)
def test_get_addons_options_contract_error(response):
    with pytest.raises(ContractError):
        _client(lambda request: response).get_addons_options()


def test_set_addons_options_posts_wire_names():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/api/setAddonsOptions"
        seen.update(json.loads(request.read()))
        return httpx.Response(200, json={})

    config = AddonsConfig(turbo_pin=7, reverse_pin_led=8, i2c_analog1219_sda_pin=9)
    assert _client(handler).set_addons_options(config) is True

    assert seen["turboPin"] == 7
    assert seen["reversePinLED"] == 8
    assert seen["i2cAnalog1219SDAPin"] == 9
    assert "usedPins" not in seen


def test_set_addons_options_accepts_plain_dict():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.read()))
        return httpx.Response(200)

    assert _client(handler).set_addons_options({"buzzerPin": 4}) is True
    assert seen == {"buzzerPin": 4}


def test_set_addons_options_failures_return_false():
    assert _client(lambda request: httpx.Response(400, text="bad")).set_addons_options({}) is False

    def down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    assert _client(down).set_addons_options({}) is False


def test_context_manager_does_not_close_injected_client():
    http = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    with DeviceClient(base_url="http://device.test", http=http) as c:
        assert c.base_url == "http://device.test"
    assert not http.is_closed


def test_empty_base_url_falls_back_to_default():
    c = DeviceClient(base_url="  ")
    try:
        assert c.base_url == "http://192.168.7.1"
    finally:
        c.close()
