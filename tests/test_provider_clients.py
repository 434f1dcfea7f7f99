try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.clients.errors import ProviderExchangeError
from app.clients.hubspot import (
    HubSpotAPIError,
    HubSpotOAuthClient,
    raise_for_hubspot_error,
)
from app.clients.slack import SlackChatClient, SlackMessageError, SlackOAuthClient
from app.core.config import HubSpotSettings, SlackSettings
from app.utils.http import RetryConfig

pytestmark = pytest.mark.anyio

NO_RETRY = RetryConfig(attempts=1, backoff_seconds=0)


def _hubspot_settings() -> HubSpotSettings:
    return HubSpotSettings(
        client_id="hs-client",
        client_secret="hs-secret",
        redirect_uri="https://example.com/api/hubspot/callback",
        scopes="oauth,crm.objects.deals.read",
    )


def _slack_settings() -> SlackSettings:
    return SlackSettings(
        client_id="slack-client",
        client_secret="slack-secret",
        redirect_uri="https://example.com/api/slack/callback",
        scopes="chat:write,channels:read",
    )


def _recording_transport(handler, requests: list):
    def wrapped(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    return httpx.MockTransport(wrapped)


def test_hubspot_authorization_url_contains_scopes() -> None:
    url = HubSpotOAuthClient(_hubspot_settings()).build_authorization_url()

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == (
        HubSpotOAuthClient.AUTH_BASE_URL
    )
    assert query["client_id"] == ["hs-client"]
    assert query["redirect_uri"] == ["https://example.com/api/hubspot/callback"]
    assert query["scope"] == ["oauth crm.objects.deals.read"]
    assert query["response_type"] == ["code"]


def test_slack_authorization_url_joins_scopes_with_commas() -> None:
    url = SlackOAuthClient(_slack_settings()).build_authorization_url(state="s1")

    query = parse_qs(urlparse(url).query)
    assert url.startswith(SlackOAuthClient.AUTH_BASE_URL)
    assert query["scope"] == ["chat:write,channels:read"]
    assert query["state"] == ["s1"]


async def test_hubspot_code_exchange_posts_form_and_validates() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "access_token": "T1",
                "refresh_token": "R1",
                "expires_in": 1800,
                "token_type": "bearer",
                "hub_domain": "demo.hubspot.com",
            },
        )

    client = HubSpotOAuthClient(
        _hubspot_settings(), transport=_recording_transport(handler, requests)
    )
    result = await client.exchange_authorization_code("abc")

    assert result.access_token == "T1"
    assert result.refresh_token == "R1"
    assert result.expires_in == 1800
    assert result.extra == {"hub_domain": "demo.hubspot.com"}

    form = parse_qs(requests[0].content.decode())
    assert str(requests[0].url) == HubSpotOAuthClient.TOKEN_URL
    assert form["grant_type"] == ["authorization_code"]
    assert form["code"] == ["abc"]
    assert form["client_secret"] == ["hs-secret"]


async def test_hubspot_refresh_sends_refresh_grant() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"access_token": "T2", "expires_in": 1800})

    client = HubSpotOAuthClient(
        _hubspot_settings(), transport=_recording_transport(handler, requests)
    )
    result = await client.refresh_access_token("R1")

    form = parse_qs(requests[0].content.decode())
    assert form["grant_type"] == ["refresh_token"]
    assert form["refresh_token"] == ["R1"]
    assert result.refresh_token is None


async def test_hubspot_exchange_error_keeps_status_and_body() -> None:
    body = {"status": "BAD_AUTH_CODE", "message": "missing or unknown auth code"}
    transport = httpx.MockTransport(lambda request: httpx.Response(400, json=body))

    client = HubSpotOAuthClient(_hubspot_settings(), transport=transport)
    with pytest.raises(ProviderExchangeError) as excinfo:
        await client.exchange_authorization_code("bad")

    error = excinfo.value
    assert error.provider == "hubspot"
    assert error.status_code == 400
    assert json.loads(error.body) == body
    assert error.details == body
    assert not error.is_multi_status


async def test_hubspot_exchange_rejects_incomplete_payload() -> None:
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"token_type": "bearer"})
    )

    client = HubSpotOAuthClient(_hubspot_settings(), transport=transport)
    with pytest.raises(ProviderExchangeError) as excinfo:
        await client.exchange_authorization_code("abc")

    assert excinfo.value.status_code == 200


def test_multi_status_response_exposes_item_errors() -> None:
    request = httpx.Request(
        "POST", "https://api.hubapi.com/crm/v3/objects/deals/batch/create"
    )
    response = httpx.Response(
        477,
        json={
            "status": "COMPLETE",
            "results": [{"id": "1"}],
            "errors": [{"status": "error", "message": "Property missing"}],
        },
        request=request,
    )

    with pytest.raises(HubSpotAPIError) as excinfo:
        raise_for_hubspot_error(response, object_type="deals")

    error = excinfo.value
    assert error.is_multi_status
    assert error.object_type == "deals"
    assert error.item_errors == [{"status": "error", "message": "Property missing"}]
    assert error.details["status"] == "COMPLETE"


def test_success_status_does_not_raise() -> None:
    raise_for_hubspot_error(httpx.Response(204))


async def test_account_info_uses_bearer_token() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"portalId": 42, "timeZone": "US/Eastern", "accountType": "STANDARD"},
        )

    client = HubSpotOAuthClient(
        _hubspot_settings(),
        transport=_recording_transport(handler, requests),
        retry_config=NO_RETRY,
    )
    info = await client.fetch_account_info("T1")

    assert info.portal_id == 42
    assert info.time_zone == "US/Eastern"
    assert info.extra == {"accountType": "STANDARD"}
    assert requests[0].headers["Authorization"] == "Bearer T1"


async def test_account_info_without_portal_id_fails() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={}))

    client = HubSpotOAuthClient(
        _hubspot_settings(), transport=transport, retry_config=NO_RETRY
    )
    with pytest.raises(HubSpotAPIError):
        await client.fetch_account_info("T1")


async def test_slack_exchange_success_keeps_team() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "ok": True,
                "access_token": "xoxb-1",
                "token_type": "bot",
                "scope": "chat:write",
                "bot_user_id": "U1",
                "app_id": "A1",
                "team": {"id": "T9", "name": "Acme"},
                "enterprise": None,
                "authed_user": {"id": "U2"},
            },
        )

    client = SlackOAuthClient(
        _slack_settings(), transport=_recording_transport(handler, requests)
    )
    result = await client.exchange_authorization_code("slack-code")

    assert result.access_token == "xoxb-1"
    assert result.team.id == "T9"
    assert result.extra == {"enterprise": None, "authed_user": {"id": "U2"}}
    assert parse_qs(requests[0].content.decode())["code"] == ["slack-code"]


async def test_slack_exchange_ok_false_raises_with_details() -> None:
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"ok": False, "error": "invalid_code"})
    )

    client = SlackOAuthClient(_slack_settings(), transport=transport)
    with pytest.raises(ProviderExchangeError) as excinfo:
        await client.exchange_authorization_code("bad")

    assert excinfo.value.provider == "slack"
    assert excinfo.value.details == {"ok": False, "error": "invalid_code"}
    assert "invalid_code" in str(excinfo.value)


async def test_slack_post_message_sends_json() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": True, "channel": "C1", "ts": "1.0"})

    client = SlackChatClient(
        transport=_recording_transport(handler, requests), retry_config=NO_RETRY
    )
    result = await client.post_message(
        access_token="xoxb-1", channel="#general", text="hello"
    )

    assert result["ok"] is True
    assert json.loads(requests[0].content) == {"channel": "#general", "text": "hello"}
    assert requests[0].headers["Authorization"] == "Bearer xoxb-1"


async def test_slack_post_message_error_raises() -> None:
    transport = httpx.MockTransport(
        lambda request: httpx.Response(
            200, json={"ok": False, "error": "channel_not_found"}
        )
    )

    client = SlackChatClient(transport=transport, retry_config=NO_RETRY)
    with pytest.raises(SlackMessageError) as excinfo:
        await client.post_message(access_token="xoxb-1", channel="#nope", text="hi")

    assert excinfo.value.details["error"] == "channel_not_found"


def _sequenced_transport(outcomes: list, requests: list) -> httpx.MockTransport:
    remaining = iter(outcomes)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        outcome = next(remaining)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return httpx.MockTransport(handler)


async def test_slack_post_message_is_not_resent_after_server_error() -> None:
    requests: list[httpx.Request] = []
    transport = _sequenced_transport(
        [
            httpx.Response(503, json={"ok": False, "error": "service_unavailable"}),
            httpx.Response(200, json={"ok": True}),
        ],
        requests,
    )

    client = SlackChatClient(
        transport=transport, retry_config=RetryConfig(attempts=3, backoff_seconds=0)
    )
    with pytest.raises(SlackMessageError) as excinfo:
        await client.post_message(access_token="xoxb-1", channel="#general", text="hi")

    assert len(requests) == 1
    assert excinfo.value.status_code == 503


async def test_slack_post_message_is_not_resent_after_transport_error() -> None:
    requests: list[httpx.Request] = []
    transport = _sequenced_transport(
        [httpx.ReadTimeout("timed out"), httpx.Response(200, json={"ok": True})],
        requests,
    )

    client = SlackChatClient(
        transport=transport, retry_config=RetryConfig(attempts=3, backoff_seconds=0)
    )
    with pytest.raises(httpx.ReadTimeout):
        await client.post_message(access_token="xoxb-1", channel="#general", text="hi")

    assert len(requests) == 1


async def test_slack_post_message_retries_when_rate_limited() -> None:
    requests: list[httpx.Request] = []
    transport = _sequenced_transport(
        [
            httpx.Response(429, json={"ok": False, "error": "ratelimited"}),
            httpx.Response(200, json={"ok": True, "ts": "1.0"}),
        ],
        requests,
    )

    client = SlackChatClient(
        transport=transport, retry_config=RetryConfig(attempts=3, backoff_seconds=0)
    )
    result = await client.post_message(
        access_token="xoxb-1", channel="#general", text="hi"
    )

    assert result["ts"] == "1.0"
    assert len(requests) == 2
