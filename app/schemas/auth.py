"""Schemas for provider OAuth responses and the connection endpoints."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator


class ProviderPayload(BaseModel):
    """
    Base for validated provider responses.

    Required fields are declared on subclasses; anything the provider sends
    beyond them lands in ``extra`` instead of becoming an attribute.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    extra: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]):
        known = {
            field.alias or name
            for name, field in cls.model_fields.items()
            if name not in {"extra", "provider"}
        }
        fields = {key: value for key, value in data.items() if key in known}
        extras = {key: value for key, value in data.items() if key not in known}
        return cls.model_validate({**fields, "extra": extras})


class HubSpotTokenResponse(ProviderPayload):
    """Token material returned by HubSpot for code and refresh exchanges."""

    provider: Literal["hubspot"] = "hubspot"
    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_in: PositiveInt
    token_type: str = "bearer"


class SlackTeam(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(..., min_length=1)
    name: Optional[str] = None


class SlackTokenResponse(ProviderPayload):
    """Token material returned by Slack's ``oauth.v2.access`` method."""

    provider: Literal["slack"] = "slack"
    ok: bool
    access_token: str = Field(..., min_length=1)
    team: SlackTeam
    token_type: Optional[str] = None
    scope: Optional[str] = None
    bot_user_id: Optional[str] = None
    app_id: Optional[str] = None

    @field_validator("ok")
    @classmethod
    def _require_ok(cls, value: bool) -> bool:
        if not value:
            raise ValueError("Slack reported ok=false for the token exchange.")
        return value


ProviderTokenResponse = Annotated[
    Union[HubSpotTokenResponse, SlackTokenResponse],
    Field(discriminator="provider"),
]


class HubSpotAccountInfo(ProviderPayload):
    """Subset of ``/account-info/v3/details`` needed to identify the portal."""

    portal_id: int = Field(..., alias="portalId")
    time_zone: Optional[str] = Field(None, alias="timeZone")
    currency: Optional[str] = Field(None, alias="companyCurrency")
    ui_domain: Optional[str] = Field(None, alias="uiDomain")


class MessageResponse(BaseModel):
    message: str


class ConnectionStatusResponse(BaseModel):
    connected: bool
    error: Optional[str] = None


class NotificationRulesPayload(BaseModel):
    """Body accepted when saving notification rules."""

    rules: list[str]


class NotificationRulesResponse(BaseModel):
    rules: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class SlackTestMessagePayload(BaseModel):
    channel: Optional[str] = None
    text: str = "Test notification from the HubSpot notification app"


__all__ = [
    "ConnectionStatusResponse",
    "HubSpotAccountInfo",
    "HubSpotTokenResponse",
    "MessageResponse",
    "NotificationRulesPayload",
    "NotificationRulesResponse",
    "ProviderPayload",
    "ProviderTokenResponse",
    "SlackTeam",
    "SlackTestMessagePayload",
    "SlackTokenResponse",
]
