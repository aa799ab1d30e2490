"""
MTN OCEP SMS client with retry logic.
Sends SMS via the gateway REST API using HTTP Basic authentication.
"""

import json
import logging
import time
from typing import Callable, Dict, List, Optional, Union

import httpx
from pydantic import BaseModel
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from sms_gateway.config.settings import Settings
from sms_gateway.utils.phone import mask_phone_number, normalize_number, validate_e164

logger = logging.getLogger(__name__)

DUPLICATE_TTL_SECONDS = 15 * 60
SINGLE_SMS_LENGTH = 160

ERROR_CODES = {
    150: "Invalid credentials",
    153: "Insufficient credits",
    154: "Invalid or banned phone number",
    155: "Duplicate message within 15 minutes",
    162: "Number is on Do Not Call list (WASPA DNC)",
}


class MtnSmsError(Exception):
    """Base error for SMS sending."""


class MtnConfigurationError(MtnSmsError):
    """Gateway credentials are missing."""


class SmsValidationError(MtnSmsError):
    """The message or its destinations were rejected before sending."""


class DuplicateMessageError(MtnSmsError):
    """The same message was sent to the same destination within the TTL."""


class MtnAuthenticationError(MtnSmsError):
    """The gateway rejected the credentials."""


class MtnNetworkError(MtnSmsError):
    """The gateway could not be reached."""


class MtnApiError(MtnSmsError):
    """The gateway returned an error or an unusable response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SentMessage(BaseModel):
    """A destination the gateway enqueued."""
    number: Optional[str] = None
    key: Optional[str] = None
    userref: Optional[str] = None


class FailedMessage(BaseModel):
    """A destination the gateway refused."""
    number: Optional[str] = None
    error: str
    error_code: Optional[int] = None


class SendResult(BaseModel):
    """Outcome of a send request."""
    status: str  # "queued" or "partial"
    successful: List[SentMessage] = []
    failed: List[FailedMessage] = []
    total_sent: int = 0
    total_failed: int = 0


def map_error_code(error_code: Optional[int]) -> str:
    """Map an MTN error code to a readable message."""
    return ERROR_CODES.get(error_code, f"Unknown error (code: {error_code})")


class MtnSmsClient:
    """Client for the MTN OCEP send API."""

    def __init__(
        self,
        base_url: str,
        username: Optional[str],
        password: Optional[str],
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not username or not password:
            raise MtnConfigurationError(
                "MTN credentials not configured. Set MTN_USERNAME and MTN_PASSWORD environment variables."
            )

        self.base_url = base_url
        self.http_client = http_client or httpx.AsyncClient(
            base_url=base_url,
            auth=(username, password),
            timeout=timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        self._clock = clock
        # Duplicate suppression cache: (to, message) key -> time sent
        self._recent: Dict[str, float] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "MtnSmsClient":
        """Create a client from application settings."""
        return cls(
            base_url=settings.mtn_base_url,
            username=settings.mtn_username,
            password=settings.mtn_password,
            timeout=settings.mtn_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self.http_client.aclose()

    def is_duplicate(self, to: Union[str, List[str]], message: str) -> bool:
        """
        Check whether this message was already sent to the same destination.

        Expired entries are evicted on every call. A message that is not a
        duplicate is recorded as sent now.

        Args:
            to: Normalized destination number(s)
            message: Message text

        Returns:
            True if the same (to, message) pair was seen within the TTL
        """
        key = json.dumps({"to": to, "message": message}, sort_keys=True)
        now = self._clock()

        expired = [k for k, sent in self._recent.items() if now - sent > DUPLICATE_TTL_SECONDS]
        for k in expired:
            del self._recent[k]

        if key in self._recent:
            return True

        self._recent[key] = now
        return False

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True
    )
    async def _post_sms(self, payload: dict) -> httpx.Response:
        """POST a send request, retrying on network failures."""
        return await self.http_client.post("/send/sms/", json=payload)

    async def send_sms(
        self,
        to: Union[str, List[str]],
        message: str,
        ems: int = 0,
        userref: Optional[str] = None
    ) -> SendResult:
        """
        Send an SMS to one or more numbers.

        Args:
            to: Destination number or list of numbers
            message: Message text
            ems: Set to 1 to allow concatenated messages over 160 characters
            userref: Optional user reference echoed back by the gateway

        Returns:
            SendResult listing enqueued and refused destinations
        """
        if not message or not message.strip():
            raise SmsValidationError("Message cannot be empty")

        if not to:
            raise SmsValidationError("Destination number(s) required")

        if isinstance(to, list):
            numbers = [normalize_number(n) for n in to]
            normalized_to: Union[str, List[str]] = numbers
        else:
            normalized_to = normalize_number(to)
            numbers = [normalized_to]

        invalid = [n for n in numbers if not validate_e164(n)]
        if invalid:
            masked = ", ".join(mask_phone_number(n) for n in invalid)
            raise SmsValidationError(f"Invalid phone numbers: {masked}")

        if len(message) > SINGLE_SMS_LENGTH and ems == 0:
            logger.warning(
                f"Message length {len(message)} > {SINGLE_SMS_LENGTH} chars. "
                f"Consider setting ems=1 for concatenated SMS."
            )

        if self.is_duplicate(normalized_to, message):
            raise DuplicateMessageError("Duplicate message detected within 15 minutes")

        payload = {
            "to": numbers[0] if len(numbers) == 1 else numbers,
            "message": message,
            "ems": str(ems),
        }
        if userref:
            payload["userref"] = userref

        preview = message[:50] + ("..." if len(message) > 50 else "")
        masked_numbers = ", ".join(mask_phone_number(n) for n in numbers)
        logger.info(f"Sending SMS to {masked_numbers}: {preview}")

        try:
            response = await self._post_sms(payload)
        except httpx.TransportError as e:
            logger.error(f"SMS send error: {e}")
            raise MtnNetworkError("Network error - unable to reach MTN API") from e

        if response.status_code == 401:
            logger.error("SMS send error: authentication failed")
            raise MtnAuthenticationError("Authentication failed - check MTN credentials")

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.error(f"SMS send error: HTTP {response.status_code} {detail}")
            raise MtnApiError(f"MTN API error ({response.status_code}): {detail}", response.status_code)

        try:
            data = response.json() if response.status_code == 200 else None
        except ValueError:
            data = None

        if not data:
            raise MtnApiError("Invalid response from MTN API", response.status_code)

        return _parse_send_response(data)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase


def _parse_send_response(data: Union[dict, list]) -> SendResult:
    """Split gateway results into enqueued and refused destinations."""
    results = data if isinstance(data, list) else [data]
    successful = []
    failed = []

    for result in results:
        number = _as_str(result.get("Number"))
        if result.get("Action") == "enqueued" and str(result.get("Result")) == "1":
            successful.append(SentMessage(
                number=number,
                key=_as_str(result.get("Key")),
                userref=_as_str(result.get("userref")),
            ))
        else:
            error_code = _as_int(result.get("Error"))
            failed.append(FailedMessage(
                number=number,
                error=map_error_code(error_code) if error_code else "Unknown error",
                error_code=error_code,
            ))

    return SendResult(
        status="queued" if not failed else "partial",
        successful=successful,
        failed=failed,
        total_sent=len(successful),
        total_failed=len(failed),
    )


def _as_str(value) -> Optional[str]:
    return str(value) if value is not None else None


def _as_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
