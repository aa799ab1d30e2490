"""
MTN OCEP webhook endpoints for delivery receipts (DLR) and inbound messages (MO).

The gateway calls these with GET query parameters and authenticates with a
shared token in the ``token`` parameter.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from sms_gateway.config.settings import Settings, get_settings
from sms_gateway.domain.webhook_records import DeliveryReceiptQuery, InboundMessageQuery
from sms_gateway.infrastructure.sms_repository import open_sms_repository
from sms_gateway.usecases.sms_webhook_service import SmsWebhookService

logger = logging.getLogger(__name__)
router = APIRouter()


def check_webhook_token(token: Optional[str], settings: Settings) -> Optional[JSONResponse]:
    """
    Validate the webhook token against the configured secret.

    Args:
        token: Token supplied in the query string
        settings: Application settings holding the expected token

    Returns:
        An error response if the request must be rejected, otherwise None
    """
    expected_token = settings.webhook_token

    if not expected_token:
        logger.error("WEBHOOK_TOKEN is not configured")
        return JSONResponse(status_code=500, content={"error": "Server configuration error"})

    if not token or not hmac.compare_digest(token.encode("utf-8"), expected_token.encode("utf-8")):
        logger.warning("Webhook access attempt with invalid token")
        return JSONResponse(status_code=403, content={"error": "Forbidden - invalid token"})

    return None


@router.get("/mtn/dlr")
async def mtn_delivery_receipt(
    FN: Optional[str] = Query(default=None, description="Recipient number on device"),
    TN: Optional[str] = Query(default=None, description="Sender (origin) number"),
    SC: Optional[str] = Query(default=None, description="Status code, 1 = delivered, 0 = failed"),
    ST: Optional[str] = Query(default=None, description="SMSC status text/code"),
    RF: Optional[str] = Query(default=None, description="Message key/reference"),
    TS: Optional[str] = Query(default=None, description="Timestamp"),
    token: Optional[str] = Query(default=None),
    settings: Settings = Depends(get_settings),
):
    """
    Handle a delivery receipt for a previously sent SMS.

    Always acknowledges with 200 once authenticated, unless processing fails
    unexpectedly; the gateway retries on anything else.
    """
    rejection = check_webhook_token(token, settings)
    if rejection is not None:
        return rejection

    query = DeliveryReceiptQuery(
        recipient_number=FN,
        sender_number=TN,
        status_code=SC,
        status_text=ST,
        message_key=RF,
        timestamp=TS,
    )

    try:
        async with open_sms_repository() as repository:
            service = SmsWebhookService(repository)
            await service.handle_delivery_receipt(query)
    except Exception as e:
        logger.error(f"DLR webhook error: {e}")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": "Failed to process delivery receipt"},
        )

    return {
        "status": "success",
        "message": "Delivery receipt processed",
        "messageKey": RF,
    }


@router.get("/mtn/mo")
async def mtn_incoming_message(
    FN: Optional[str] = Query(default=None, description="Citizen's number"),
    TN: Optional[str] = Query(default=None, description="Municipality receiving number"),
    MS: Optional[str] = Query(default=None, description="Message text"),
    TS: Optional[str] = Query(default=None, description="Timestamp"),
    token: Optional[str] = Query(default=None),
    settings: Settings = Depends(get_settings),
):
    """Handle an SMS sent by a citizen to the municipality's number."""
    rejection = check_webhook_token(token, settings)
    if rejection is not None:
        return rejection

    query = InboundMessageQuery(
        from_number=FN,
        to_number=TN,
        message_text=MS,
        timestamp=TS,
    )

    try:
        async with open_sms_repository() as repository:
            service = SmsWebhookService(repository)
            await service.handle_inbound_message(query)
    except Exception as e:
        logger.error(f"MO webhook error: {e}")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": "Failed to process incoming message"},
        )

    return {
        "status": "success",
        "message": "Incoming message processed",
    }

