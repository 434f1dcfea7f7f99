"""
FastAPI routes for the HubSpot/Slack connection service.

Every handler converts provider and store failures into the fixed response
shapes below; raw provider errors are only ever logged.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError

from app.clients import HubSpotOAuthClient, ProviderError, SlackOAuthClient
from app.core.config import AppSettings
from app.dependencies import (
    get_app_settings,
    get_connection_service,
    get_hubspot_oauth_client,
    get_notification_rule_store,
    get_session_codec,
    get_session_payload,
    get_slack_notification_service,
    get_slack_oauth_client,
    get_slack_token_service,
    require_session,
    set_session_cookie,
)
from app.schemas import (
    ConnectionStatusResponse,
    MessageResponse,
    NotificationRulesPayload,
    NotificationRulesResponse,
    SlackTestMessagePayload,
)
from app.services import (
    ConnectionService,
    NotConnectedError,
    NotificationRuleStore,
    NotLinkedError,
    SessionCodec,
    SlackNotificationService,
    TokenLifecycleManager,
)
from app.services.connections import portal_id_from
from app.services.session_codec import SessionPayload

router = APIRouter()
logger = logging.getLogger(__name__)

OptionalSession = Annotated[Optional[SessionPayload], Depends(get_session_payload)]
RequiredSession = Annotated[SessionPayload, Depends(require_session)]


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def _log_failure(message: str, exc: Exception, **context: Any) -> None:
    """Log a caught failure, including the provider's own error body if any."""
    if isinstance(exc, ProviderError):
        context.update(
            provider=exc.provider,
            status_code=exc.status_code,
            provider_error=exc.details or exc.body,
        )
    logger.exception(message, extra=context)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/hubspot/auth")
async def redirect_to_hubspot_auth(
    oauth_client: Annotated[HubSpotOAuthClient, Depends(get_hubspot_oauth_client)],
) -> RedirectResponse:
    """Send the browser to HubSpot's consent screen."""
    return RedirectResponse(
        url=oauth_client.build_authorization_url(), status_code=HTTPStatus.FOUND
    )


@router.get("/hubspot/callback", response_model=MessageResponse)
async def handle_hubspot_callback(
    response: Response,
    session: OptionalSession,
    connections: Annotated[ConnectionService, Depends(get_connection_service)],
    codec: Annotated[SessionCodec, Depends(get_session_codec)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    code: Optional[str] = Query(None, description="Authorization code from HubSpot."),
) -> Any:
    """Exchange the code, file the token under the portal id and extend the session."""
    if not code:
        return _message(
            HTTPStatus.BAD_REQUEST, "Missing authorization code from HubSpot."
        )

    try:
        payload = await connections.connect_hubspot(code, session)
    except Exception as exc:  # pylint: disable=broad-except
        _log_failure("HubSpot auth failed", exc, route="hubspot/callback")
        return _message(HTTPStatus.INTERNAL_SERVER_ERROR, "HUBSPOT_AUTH_FAILED")

    set_session_cookie(response, payload, codec=codec, settings=settings)
    return {"message": "HubSpot Connected Successfully"}


@router.get(
    "/hubspot/status",
    response_model=ConnectionStatusResponse,
    response_model_exclude_none=True,
)
async def get_hubspot_status(
    session: OptionalSession,
    connections: Annotated[ConnectionService, Depends(get_connection_service)],
) -> Any:
    try:
        return {"connected": connections.hubspot_connected(session)}
    except Exception as exc:  # pylint: disable=broad-except
        _log_failure("Error checking HubSpot status", exc, route="hubspot/status")
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            content={"connected": False, "error": "STATUS_CHECK_FAILED"},
        )


@router.get("/slack/auth")
async def redirect_to_slack_auth(
    oauth_client: Annotated[SlackOAuthClient, Depends(get_slack_oauth_client)],
) -> RedirectResponse:
    """Send the browser to Slack's consent screen."""
    return RedirectResponse(
        url=oauth_client.build_authorization_url(), status_code=HTTPStatus.FOUND
    )


@router.get("/slack/callback", response_model=MessageResponse)
async def handle_slack_callback(
    response: Response,
    session: OptionalSession,
    connections: Annotated[ConnectionService, Depends(get_connection_service)],
    codec: Annotated[SessionCodec, Depends(get_session_codec)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    code: Optional[str] = Query(None, description="Authorization code from Slack."),
) -> Any:
    """Exchange the code and file the Slack token under the session's portal."""
    if not code:
        return _message(HTTPStatus.BAD_REQUEST, "Missing Slack authorization code")

    try:
        payload = await connections.connect_slack(code, session)
    except NotLinkedError as exc:
        logger.warning("Slack callback without a HubSpot portal in session")
        return _message(HTTPStatus.BAD_REQUEST, str(exc))
    except Exception as exc:  # pylint: disable=broad-except
        _log_failure(
            "Slack auth failed",
            exc,
            route="slack/callback",
            portal_id=portal_id_from(session),
        )
        return _message(HTTPStatus.INTERNAL_SERVER_ERROR, "SLACK_AUTH_FAILED")

    set_session_cookie(response, payload, codec=codec, settings=settings)
    return {"message": "Slack connected successfully"}


@router.get(
    "/slack/status",
    response_model=ConnectionStatusResponse,
    response_model_exclude_none=True,
)
async def get_slack_status(
    session: OptionalSession,
    connections: Annotated[ConnectionService, Depends(get_connection_service)],
) -> Any:
    try:
        return {"connected": connections.slack_connected(session)}
    except Exception as exc:  # pylint: disable=broad-except
        _log_failure("Error checking Slack status", exc, route="slack/status")
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            content={"connected": False, "error": "STATUS_CHECK_FAILED"},
        )


@router.delete("/slack/connection", response_model=MessageResponse)
async def disconnect_slack(
    session: RequiredSession,
    slack_tokens: Annotated[TokenLifecycleManager, Depends(get_slack_token_service)],
) -> Any:
    """Forget the Slack token filed under the session's portal."""
    portal_id = portal_id_from(session)
    if portal_id is None:
        return _message(HTTPStatus.BAD_REQUEST, "No HubSpot portal context found")

    try:
        slack_tokens.disconnect(portal_id)
    except Exception as exc:  # pylint: disable=broad-except
        _log_failure("Slack disconnect failed", exc, portal_id=portal_id)
        return _message(HTTPStatus.INTERNAL_SERVER_ERROR, "SLACK_DISCONNECT_FAILED")
    return {"message": "Slack disconnected"}


@router.post("/slack/send-test", response_model=MessageResponse)
async def send_slack_test_message(
    session: RequiredSession,
    notifier: Annotated[
        SlackNotificationService, Depends(get_slack_notification_service)
    ],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    payload: Optional[SlackTestMessagePayload] = Body(default=None),
) -> Any:
    """Post a test message to Slack for the session's portal."""
    portal_id = portal_id_from(session)
    if portal_id is None:
        return _message(HTTPStatus.BAD_REQUEST, "No HubSpot portal context found")

    message = payload or SlackTestMessagePayload()
    channel = message.channel or settings.slack.test_channel
    try:
        await notifier.send_message(portal_id, channel, message.text)
    except NotConnectedError:
        logger.warning("Slack test message without a Slack connection")
        return _message(
            HTTPStatus.BAD_REQUEST, "No Slack connection found for this portal"
        )
    except Exception as exc:  # pylint: disable=broad-except
        _log_failure("Slack message send failed", exc, portal_id=portal_id)
        return _message(HTTPStatus.INTERNAL_SERVER_ERROR, "SLACK_SEND_FAILED")
    return {"message": "Sent to Slack"}


@router.post("/notifications/rules", response_model=MessageResponse)
async def save_notification_rules(
    request: Request,
    session: RequiredSession,
    rule_store: Annotated[NotificationRuleStore, Depends(get_notification_rule_store)],
) -> Any:
    """Replace the portal's notification rules with the submitted list."""
    portal_id = portal_id_from(session)
    if portal_id is None:
        logger.warning("Attempted to save rules without hubspotPortalId")
        return _message(HTTPStatus.BAD_REQUEST, "No HubSpot portal context found")

    try:
        body = NotificationRulesPayload.model_validate(await request.json())
    except (ValueError, ValidationError):
        logger.warning(
            "Invalid rules format submitted", extra={"portal_id": portal_id}
        )
        return _message(HTTPStatus.BAD_REQUEST, "Invalid rules format")

    try:
        rule_store.save_rules(portal_id, body.rules)
    except Exception as exc:  # pylint: disable=broad-except
        _log_failure(
            "Failed to save notification rules",
            exc,
            route="notifications/rules",
            portal_id=portal_id,
        )
        return _message(HTTPStatus.INTERNAL_SERVER_ERROR, "RULE_SAVE_FAILED")

    logger.info(
        "Notification rules saved",
        extra={"portal_id": portal_id, "count": len(body.rules)},
    )
    return {"message": "Rules saved successfully"}


@router.get(
    "/notifications/rules",
    response_model=NotificationRulesResponse,
    response_model_exclude_none=True,
)
async def get_notification_rules(
    session: OptionalSession,
    rule_store: Annotated[NotificationRuleStore, Depends(get_notification_rule_store)],
) -> Any:
    portal_id = portal_id_from(session)
    if portal_id is None:
        return {"rules": []}

    try:
        rules = rule_store.get_rules(portal_id)
    except Exception as exc:  # pylint: disable=broad-except
        _log_failure(
            "Failed to fetch notification rules",
            exc,
            route="notifications/rules",
            portal_id=portal_id,
        )
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            content={"rules": [], "error": "RULE_FETCH_FAILED"},
        )
    return {"rules": rules}


__all__ = ["router"]
