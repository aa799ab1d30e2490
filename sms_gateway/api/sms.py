"""
Outbound SMS endpoints used by the portal to notify citizens.

These routes are meant for internal callers only and carry no token check;
deployments keep them off the public ingress.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from sms_gateway.infrastructure.mtn_sms_client import (
    DuplicateMessageError,
    MtnSmsClient,
    MtnSmsError,
    SendResult,
    SmsValidationError,
)
from sms_gateway.infrastructure.sms_repository import open_sms_repository
from sms_gateway.usecases.outbound_sms_service import OutboundSmsService

logger = logging.getLogger(__name__)
router = APIRouter()


def get_sms_client(request: Request) -> Optional[MtnSmsClient]:
    """Return the gateway client created at startup, if credentials were set."""
    return getattr(request.app.state, "sms_client", None)


def send_failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "failed", "error": error})


def validate_send_request(payload: Dict[str, Any]) -> Optional[str]:
    """
    Check a send request body.

    Returns:
        The error message for the first problem found, otherwise None
    """
    to = payload.get("to")
    message = payload.get("message")
    ems = payload.get("ems", 0)

    if to is None or to == "":
        return "Missing required field: to"

    if not isinstance(message, str) or not message.strip():
        return "Message is required and must be a non-empty string"

    if isinstance(ems, bool) or ems not in (0, 1, "0", "1"):
        return "ems must be 0 or 1"

    destinations = to if isinstance(to, list) else [to]
    if not destinations:
        return "At least one destination number is required"

    if any(not isinstance(dest, str) or not dest.strip() for dest in destinations):
        return "All destination numbers must be valid strings"

    return None


def serialize_result(result: SendResult) -> dict:
    return {
        "status": result.status,
        "message": "SMS processing completed",
        "details": {
            "totalSent": result.total_sent,
            "totalFailed": result.total_failed,
            "successful": [
                {"number": sent.number, "key": sent.key, "userref": sent.userref}
                for sent in result.successful
            ],
            "failed": [
                {"number": failed.number, "error": failed.error, "errorCode": failed.error_code}
                for failed in result.failed
            ],
        },
    }


@router.post("/send")
async def send_sms(
    payload: Dict[str, Any] = Body(...),
    client: Optional[MtnSmsClient] = Depends(get_sms_client),
):
    """
    Send an SMS to one or more citizens.

    Body fields: ``to`` (number or list of numbers), ``message``, optional
    ``ems`` (0 or 1) and ``userref``.
    """
    error = validate_send_request(payload)
    if error:
        return send_failure(400, error)

    if client is None:
        logger.error("SMS send requested but MTN credentials are not configured")
        return send_failure(500, "SMS gateway not configured")

    try:
        async with open_sms_repository() as repository:
            service = OutboundSmsService(client, repository)
            result = await service.send(
                payload["to"],
                payload["message"].strip(),
                ems=int(payload.get("ems", 0)),
                userref=payload.get("userref"),
            )
    except (SmsValidationError, DuplicateMessageError) as e:
        logger.warning(f"SMS send rejected: {e}")
        return send_failure(400, str(e))
    except MtnSmsError as e:
        logger.error(f"SMS send endpoint error: {e}")
        return send_failure(500, str(e))
    except Exception as e:
        logger.error(f"SMS send endpoint error: {e}")
        return send_failure(500, "Failed to send SMS")

    return serialize_result(result)


@router.get("/status/{key}")
async def sms_status(key: str):
    """Report the delivery status recorded for a message key."""
    try:
        async with open_sms_repository() as repository:
            message = await repository.find_by_message_key(key)
    except Exception as e:
        logger.error(f"SMS status endpoint error: {e}")
        return send_failure(500, "Failed to look up message status")

    if message is None:
        return send_failure(404, "Message not found")

    return {
        "status": "success",
        "key": key,
        "deliveryStatus": message.delivery_status.value,
        "statusCode": message.status_code,
        "statusText": message.status_text,
        "statusUpdatedAt": (
            message.status_updated_at.isoformat() if message.status_updated_at else None
        ),
    }
