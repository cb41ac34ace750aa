"""Google account connection endpoints."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import RedirectResponse

from lifedash.api.deps import get_current_user_id, get_google_services, get_logger
from lifedash.api.v1.common import data_response, google_http_error
from lifedash.core.oauth_google import (
    GoogleNotConfiguredError,
    GoogleTokenError,
)
from lifedash.core.structured_logger import StructuredLogger
from lifedash.services.google_services import GoogleServices
from lifedash.services.token_validator import connection_status, minutes_until_expiry

router = APIRouter(prefix="/integrations", tags=["integrations"])


@router.get("/google/authorize", status_code=status.HTTP_302_FOUND)
async def google_authorize(
    user_id: str = Depends(get_current_user_id),
    google: GoogleServices = Depends(get_google_services),
) -> RedirectResponse:
    """Redirect the user to Google's OAuth consent page."""

    try:
        authorize_url = google.oauth_client.build_authorize_url(state=user_id)
    except GoogleNotConfiguredError as exc:
        raise google_http_error(exc) from exc
    return RedirectResponse(authorize_url, status_code=status.HTTP_302_FOUND)


@router.get("/google/callback")
async def google_callback(
    code: str | None = None,
    error: str | None = None,
    state: str | None = None,
    user_id: str = Depends(get_current_user_id),
    google: GoogleServices = Depends(get_google_services),
    logger: StructuredLogger = Depends(get_logger),
) -> dict[str, dict[str, bool]]:
    """Handle the OAuth callback by exchanging the code for tokens."""

    oauth_logger = logger.child("google-oauth")
    if error:
        await oauth_logger.warn("Google OAuth consent failed", code=error)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "GOOGLE_OAUTH_ERROR", "message": error},
        )
    if not code:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "VALIDATION_ERROR", "message": "Missing authorization code"},
        )
    if state is not None and state != user_id:
        await oauth_logger.warn("Google OAuth state mismatch", code="STATE_MISMATCH")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "GOOGLE_OAUTH_ERROR", "message": "OAuth state does not match user"},
        )

    try:
        grant = await google.oauth_client.exchange_code(code)
    except GoogleNotConfiguredError as exc:
        raise google_http_error(exc) from exc
    except GoogleTokenError as exc:
        await oauth_logger.error(
            "Google authorization code exchange failed",
            error_type=exc.kind.value,
            detail=exc.detail,
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"code": "GOOGLE_API_ERROR", "message": "Failed to exchange authorization code"},
        ) from exc

    now = datetime.now(UTC)
    fields: dict[str, Any] = {
        "access_token": grant.access_token,
        "expiry_date": now + timedelta(seconds=grant.expires_in),
        "updated_at": now,
    }
    if grant.refresh_token:
        fields["refresh_token"] = grant.refresh_token

    try:
        await google.store.upsert(user_id, **fields)
    except GoogleTokenError as exc:
        await oauth_logger.error(
            "Failed to store Google tokens", error_type=exc.kind.value, detail=exc.detail
        )
        raise google_http_error(exc) from exc

    await oauth_logger.info("Google account connected", has_refresh_token=bool(grant.refresh_token))
    return data_response({"connected": True})


@router.get("/google/status")
async def google_status(
    user_id: str = Depends(get_current_user_id),
    google: GoogleServices = Depends(get_google_services),
) -> dict[str, dict[str, Any]]:
    """Report the stored connection state without refreshing the token."""

    try:
        token = await google.store.get(user_id)
    except GoogleTokenError as exc:
        raise google_http_error(exc) from exc

    now = datetime.now(UTC)
    return data_response(
        {
            "status": connection_status(token, now).value,
            "connected": token is not None,
            "expires_in_minutes": minutes_until_expiry(token, now) if token else None,
            "refresh_in_progress": google.validator.refresh_in_progress(user_id),
        }
    )


@router.delete("/google")
async def google_disconnect(
    user_id: str = Depends(get_current_user_id),
    google: GoogleServices = Depends(get_google_services),
    logger: StructuredLogger = Depends(get_logger),
) -> dict[str, dict[str, bool]]:
    """Forget the stored Google credentials for the current user."""

    try:
        deleted = await google.store.delete(user_id)
    except GoogleTokenError as exc:
        raise google_http_error(exc) from exc
    if deleted:
        await logger.child("google-oauth").info("Google account disconnected")
    return data_response({"disconnected": deleted})
