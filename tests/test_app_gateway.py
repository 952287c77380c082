"""
Tests for the request pipeline in dweb.brave.gateway.app.handlers.gateway

The resolution API and IPFS gateways are served by the FakeSession fixture.
"""

import asyncio

import pytest
from unittest.mock import patch
from aiohttp import ClientConnectionError
from aiohttp.test_utils import make_mocked_request

from dweb.brave.gateway.app.handlers.gateway import request_hostname, serve_hostname

API_URL = "https://api.example.com/resolve/domains/sunspot.brave"
CID = "QmSunspot"
GW1 = f"https://gw1.example.com/ipfs/{CID}"
GW2 = f"https://gw2.example.com/ipfs/{CID}"
GW3 = f"https://gw3.example.com/ipfs/{CID}"


@pytest.fixture
def serve(settings, fake_session, cache, metrics_client, health_gauge):
    async def _serve(hostname: str):
        return await serve_hostname(
            hostname, settings, fake_session, cache, metrics_client, health_gauge
        )

    return _serve


def route_records(fake_session, make_response, records, url=API_URL):
    fake_session.route(url, make_response(json_body={"records": records}))


def route_gateways(fake_session, make_response, body=b"<h1>sunspot</h1>", content_type=None):
    fake_session.route(GW1, make_response(body=body, url=GW1, content_type=content_type))
    fake_session.route(GW2, make_response(body=body, url=GW2), delay=0.05)
    fake_session.route(GW3, make_response(body=body, url=GW3), delay=0.05)


class TestRequestHostname:
    @pytest.mark.parametrize(
        "host,hostname",
        [
            ("sunspot.brave.site", "sunspot.brave.site"),
            ("Sunspot.brave.site:8080", "Sunspot.brave.site"),
            ("[::1]:8080", "[::1]"),
        ],
    )
    def test_strips_port(self, host, hostname):
        request = make_mocked_request("GET", "/", headers={"Host": host})
        assert request_hostname(request) == hostname


class TestServeHostname:
    async def test_welcome(self, serve, fake_session):
        response = await serve("brave.site")

        assert response.status == 200
        assert response.content_type == "text/plain"
        assert response.text.startswith("Welcome to the .brave domain resolver.")
        assert fake_session.calls == []

    async def test_unsupported_domain(self, serve, fake_session):
        response = await serve("foo.com")

        assert response.status == 400
        assert response.text == "Invalid or unsupported domain format. Must end with .brave.site"
        assert fake_session.calls == []

    async def test_malformed_domain(self, serve, fake_session):
        response = await serve("a..brave.site")

        assert response.status == 400
        assert response.text == "Invalid domain format."
        assert fake_session.calls == []

    async def test_redirect(self, serve, fake_session, make_response):
        route_records(
            fake_session,
            make_response,
            {"browser.redirect_url": "https://x.example", "dweb.ipfs.hash": CID},
        )

        response = await serve("sunspot.brave.site")

        assert response.status == 302
        assert response.headers["Location"] == "https://x.example"
        assert [url for url, _ in fake_session.calls] == [API_URL]

    async def test_resolver_request(self, serve, fake_session, make_response):
        route_records(fake_session, make_response, {"browser.redirect_url": "https://x.example"})

        await serve("sunspot.brave.site")

        url, kwargs = fake_session.calls[0]
        assert url == API_URL
        assert kwargs["headers"]["Authorization"] == "Bearer test-api-key"

    async def test_subdomain_lookup_key(self, serve, fake_session, make_response):
        url = "https://api.example.com/resolve/domains/myai.sunspot.brave"
        route_records(fake_session, make_response, {}, url=url)

        response = await serve("myai.sunspot.brave.site")

        assert response.status == 404
        assert fake_session.calls[0][0] == url

    async def test_content(self, serve, fake_session, make_response):
        route_records(fake_session, make_response, {"dweb.ipfs.hash": CID})
        route_gateways(fake_session, make_response, content_type="text/html; charset=utf-8")

        response = await serve("sunspot.brave.site")

        assert response.status == 200
        assert response.body == b"<h1>sunspot</h1>"
        assert response.headers["Content-Type"] == "text/html; charset=utf-8"
        assert response.headers["Cache-Control"] == "public, max-age=3600"
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    async def test_content_type_inferred(self, serve, fake_session, make_response):
        png_url = f"https://gw1.example.com/ipfs/{CID}/logo.png"
        route_records(fake_session, make_response, {"ipfs.html.value": CID})
        fake_session.route(GW1, make_response(body=b"\x89PNG", url=png_url))
        fake_session.route(GW2, make_response(status=500, url=GW2), delay=0.05)
        fake_session.route(GW3, make_response(status=500, url=GW3), delay=0.05)

        response = await serve("sunspot.brave.site")

        assert response.status == 200
        assert response.headers["Content-Type"] == "image/png"

    async def test_not_found(self, serve, fake_session, make_response):
        route_records(fake_session, make_response, {"crypto.ETH.address": "0xabc"})

        response = await serve("sunspot.brave.site")

        assert response.status == 404
        assert response.text == "No IPFS hash found for domain"

    async def test_nested_records(self, serve, fake_session, make_response):
        fake_session.route(
            API_URL,
            make_response(json_body={"data": {"records": {"dweb.ipfs.hash": CID}}}),
        )
        route_gateways(fake_session, make_response)

        response = await serve("sunspot.brave.site")

        assert response.status == 200

    async def test_cache_hit_skips_resolver(self, serve, fake_session, make_response, cache):
        route_records(fake_session, make_response, {"browser.redirect_url": "https://x.example"})

        first = await serve("sunspot.brave.site")
        second = await serve("sunspot.brave.site")

        assert first.status == second.status == 302
        assert fake_session.call_count(API_URL) == 1
        assert "sunspot.brave" in cache

    async def test_missing_api_key(self, serve, fake_session, settings):
        settings.unstoppable_api_key = None

        response = await serve("sunspot.brave.site")

        assert response.status == 500
        assert response.text == "API key not valid"
        assert fake_session.calls == []

    async def test_welcome_without_api_key(self, serve, settings):
        settings.unstoppable_api_key = None

        response = await serve("brave.site")

        assert response.status == 200

    @patch("dweb.brave.gateway.app.handlers.gateway.sentry_sdk")
    async def test_upstream_error(self, mock_sentry, serve, fake_session, make_response, cache):
        fake_session.route(
            API_URL,
            make_response(status=404, reason="Not Found", body=b"domain not found"),
        )

        response = await serve("sunspot.brave.site")

        assert response.status == 500
        assert response.text == "Error querying Unstoppable Domains: Not Found - domain not found"
        assert "sunspot.brave" not in cache
        mock_sentry.capture_exception.assert_called_once()

    async def test_all_gateways_failed(self, serve, fake_session, make_response):
        route_records(fake_session, make_response, {"dweb.ipfs.hash": CID})
        fake_session.route(GW1, make_response(status=500, url=GW1))
        fake_session.route(GW2, ClientConnectionError("refused"))
        fake_session.route(GW3, make_response(status=504, url=GW3))

        response = await serve("sunspot.brave.site")

        assert response.status == 500
        assert response.text == "Error fetching IPFS content: All gateways failed"

    @patch("dweb.brave.gateway.app.handlers.gateway.sentry_sdk")
    @patch("dweb.brave.gateway.app.handlers.gateway.interpret_record")
    async def test_unexpected_error(
        self, mock_interpret, mock_sentry, serve, fake_session, make_response, health_gauge
    ):
        route_records(fake_session, make_response, {"dweb.ipfs.hash": CID})
        mock_interpret.side_effect = RuntimeError("boom")

        response = await serve("sunspot.brave.site")

        assert response.status == 500
        assert response.text == "Server error: boom"
        assert "Traceback" not in response.text
        assert health_gauge.value == 1
        mock_sentry.capture_exception.assert_called_once()

    @patch("dweb.brave.gateway.app.handlers.gateway.sentry_sdk")
    async def test_resolver_timeout(self, mock_sentry, serve, fake_session, health_gauge):
        fake_session.route(API_URL, asyncio.TimeoutError())

        response = await serve("sunspot.brave.site")

        assert response.status == 500
        assert response.text == "Server error: TimeoutError"
        assert health_gauge.value == 1

    @patch("dweb.brave.gateway.app.handlers.gateway.sentry_sdk")
    async def test_resolver_unreachable(self, mock_sentry, serve, fake_session):
        fake_session.route(API_URL, ClientConnectionError("refused"))

        response = await serve("sunspot.brave.site")

        assert response.status == 500
        assert response.text == "Server error: refused"

    async def test_idempotent(self, serve, fake_session, make_response):
        route_records(fake_session, make_response, {"dweb.ipfs.hash": CID})
        route_gateways(fake_session, make_response, content_type="text/html")

        first = await serve("sunspot.brave.site")
        second = await serve("sunspot.brave.site")

        assert first.status == second.status == 200
        assert dict(first.headers) == dict(second.headers)
        assert first.body == second.body
