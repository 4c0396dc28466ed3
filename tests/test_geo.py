import httpx
from starlette.requests import Request

from utils import geo


def _request(headers=None, client=("203.0.113.7", 5000)) -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "server": ("test", 80),
        "client": client,
        "path": "/",
        "root_path": "",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
    })


def test_client_ip_prefers_forwarded_for():
    assert geo.client_ip(_request({"X-Forwarded-For": "198.51.100.1, 10.0.0.1"})) == "198.51.100.1"
    assert geo.client_ip(_request(client=("::ffff:198.51.100.2", 1))) == "198.51.100.2"


def test_proxy_headers_win(monkeypatch):
    monkeypatch.setattr(geo, "lookup_ip", lambda ip: ("Nope", "Nope"))
    assert geo.resolve_location(_request({"CF-IPCountry": "DE"})) == ("DE", "Unknown")
    assert geo.resolve_location(_request({"X-Country": "Germany", "X-City": "Berlin"})) == ("Germany", "Berlin")


def test_lookup_without_config(monkeypatch):
    monkeypatch.delenv("GEOIP_API_URL", raising=False)
    assert geo.lookup_ip("203.0.113.7") == ("Unknown", "Unknown")


def test_lookup_skips_private_ips(monkeypatch):
    monkeypatch.setenv("GEOIP_API_URL", "https://geo.example/{ip}/json/")
    monkeypatch.setattr(httpx, "get", lambda *a, **kw: (_ for _ in ()).throw(AssertionError("kein Aufruf")))
    assert geo.lookup_ip("192.168.1.10") == ("Unknown", "Unknown")


def test_lookup_reads_response(monkeypatch):
    monkeypatch.setenv("GEOIP_API_URL", "https://geo.example/{ip}/json/")
    calls = []

    def fake_get(url, timeout):
        calls.append(url)
        return httpx.Response(200, json={"country_name": "Germany", "city": "Berlin"})

    monkeypatch.setattr(httpx, "get", fake_get)
    assert geo.lookup_ip("8.8.8.8") == ("Germany", "Berlin")
    assert calls == ["https://geo.example/8.8.8.8/json/"]


def test_lookup_failure_is_unknown(monkeypatch):
    monkeypatch.setenv("GEOIP_API_URL", "https://geo.example/{ip}/json/")
    calls = []

    def boom(url, timeout):
        calls.append(url)
        raise httpx.ConnectError("offline")

    monkeypatch.setattr(httpx, "get", boom)
    assert geo.lookup_ip("8.8.8.8") == ("Unknown", "Unknown")
    assert len(calls) == 1


def test_lookup_ignores_non_object_response(monkeypatch):
    monkeypatch.setenv("GEOIP_API_URL", "https://geo.example/{ip}/json/")
    calls = []

    def fake_get(url, timeout):
        calls.append(url)
        return httpx.Response(200, json=["rate limited"])

    monkeypatch.setattr(httpx, "get", fake_get)
    assert geo.lookup_ip("8.8.8.8") == ("Unknown", "Unknown")
    assert len(calls) == 1


def test_public_ip_check():
    assert geo._is_public_ip("8.8.8.8") is True
    assert geo._is_public_ip("10.1.2.3") is False
