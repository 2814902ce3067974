"""Clerk webhook: provisions, updates and removes user records."""

from typing import Any

import orjson
from fastapi import APIRouter, Request

from app.core.config import get_settings
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.core.security import verify_clerk_webhook
from app.services import users as user_service

log = get_logger(__name__)

router = APIRouter()

USER_EVENTS = ("user.created", "user.updated", "user.deleted")


def _primary_email(data: dict[str, Any]) -> str:
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for address in addresses:
        if address.get("id") == primary_id:
            return address.get("email_address") or ""
    return (addresses[0].get("email_address") or "") if addresses else ""


def user_fields_from_clerk(data: dict[str, Any]) -> dict[str, Any]:
    """Map a Clerk user object onto the fields a user record stores."""
    first_name = data.get("first_name") or None
    last_name = data.get("last_name") or None
    username = data.get("username") or None
    email = _primary_email(data)
    full_name = " ".join(p for p in (first_name, last_name) if p)
    return {
        "email": email,
        "name": full_name or username or email,
        "username": username,
        "first_name": first_name,
        "last_name": last_name,
        "photo": data.get("image_url") or None,
    }


@router.post("/clerk")
async def clerk_webhook(request: Request):
    payload = await request.body()
    verify_clerk_webhook(payload, request.headers, get_settings().clerk_webhook_secret)
    try:
        event = orjson.loads(payload)
    except orjson.JSONDecodeError:
        raise ValidationError("Webhook body is not valid JSON") from None
    event_type = event.get("type")
    data = event.get("data") or {}
    clerk_id = data.get("id")
    log.info("clerk_webhook", event_type=event_type, clerk_id=clerk_id)
    if event_type not in USER_EVENTS:
        return {"message": "ignored", "type": event_type}
    if not clerk_id:
        raise ValidationError("Webhook event has no user id")

    if event_type == "user.created":
        # Credentials stay with Clerk; the record keeps a reference to them.
        fields = {**user_fields_from_clerk(data), "clerk_id": clerk_id, "password": f"clerk:{clerk_id}"}
        result = await user_service.create_user(fields)
    elif event_type == "user.updated":
        result = await user_service.update_user(clerk_id, user_fields_from_clerk(data))
    else:
        result = await user_service.delete_user(clerk_id)
    return {"message": "OK", "user": result.unwrap()}
