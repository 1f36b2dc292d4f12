"""SMS delivery of verification codes.

The gateway is an external HTTP service; this module only formats the message
and bounds the call with a timeout. Any failure (timeout included) surfaces as
DeliveryFailed, and the issuer decides whether that is fatal.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from .config import SMS_GATEWAY_API_KEY, SMS_GATEWAY_URL, SMS_SENDER, SMS_TIMEOUT_SECONDS
from .errors import DeliveryFailed
from .utils import mask_phone, to_e164

logger = logging.getLogger(__name__)


def otp_message(code: str, ttl_minutes: int) -> str:
    return f"Ada doğrulama kodunuz: {code}. Kod {ttl_minutes} dakika geçerlidir. Kimseyle paylaşmayın."


class SMSGateway(ABC):
    @abstractmethod
    def send(self, identifier: str, text: str, timeout: Optional[float] = None) -> None:
        """Delivers `text` to the identifier or raises DeliveryFailed."""


class UnconfiguredSMSGateway(SMSGateway):
    """Used when SMS_GATEWAY_URL is not set: every delivery fails."""

    def send(self, identifier: str, text: str, timeout: Optional[float] = None) -> None:
        logger.warning("[SMS] Gateway not configured, nothing sent to %s", mask_phone(identifier))
        raise DeliveryFailed()


class HttpSMSGateway(SMSGateway):
    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        sender: str = SMS_SENDER,
        timeout: float = SMS_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self._transport = transport

    def send(self, identifier: str, text: str, timeout: Optional[float] = None) -> None:
        payload = {"from": self.sender, "to": to_e164(identifier), "text": text}
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        client_timeout = self.timeout if timeout is None else timeout

        try:
            with httpx.Client(timeout=client_timeout, transport=self._transport) as client:
                response = client.post(self.url, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error("[SMS] Timeout sending to %s: %s", mask_phone(identifier), e)
            raise DeliveryFailed() from e
        except httpx.HTTPError as e:
            logger.error("[SMS] Gateway error sending to %s: %s", mask_phone(identifier), e)
            raise DeliveryFailed() from e

        logger.info("[SMS] Code sent to %s", mask_phone(identifier))


def build_sms_gateway() -> SMSGateway:
    if not SMS_GATEWAY_URL:
        return UnconfiguredSMSGateway()
    return HttpSMSGateway(SMS_GATEWAY_URL, api_key=SMS_GATEWAY_API_KEY)
