from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from .config import SmsConfig

logger = logging.getLogger(__name__)


class DeliveryError(RuntimeError):
    """SMS could not be delivered."""


@dataclass(slots=True, frozen=True)
class DeliveryResult:
    success: bool
    error: Optional[str] = None


class SmsNotifier:
    """Send deal alerts by SMS through Twilio; no-op without SMS config."""

    def __init__(
        self,
        sms: Optional[SmsConfig],
        client_factory: Callable[[str, str], Any] = Client,
    ) -> None:
        self.sms = sms
        self._client_factory = client_factory
        self._client: Any = None

    @property
    def enabled(self) -> bool:
        return self.sms is not None

    def send(self, msg: str) -> None:
        """Send *msg* to the configured recipient or raise ``DeliveryError``."""
        if self.sms is None:
            return
        try:
            if self._client is None:
                self._client = self._client_factory(
                    self.sms.account_sid, self.sms.auth_token
                )
            self._client.messages.create(
                body=msg, from_=self.sms.phone_from, to=self.sms.phone_to
            )
        except (TwilioException, OSError) as exc:
            raise DeliveryError(
                f"failed to send SMS to {self.sms.phone_to} "
                f"from {self.sms.phone_from}: {exc}"
            ) from exc

    async def dispatch(self, msg: str) -> DeliveryResult:
        if self.sms is None:
            return DeliveryResult(success=True)
        try:
            await asyncio.to_thread(self.send, msg)
        except DeliveryError as exc:
            logger.warning("%s", exc)
            return DeliveryResult(success=False, error=str(exc))
        logger.info("Sent SMS to %s", self.sms.phone_to)
        return DeliveryResult(success=True)


__all__ = ["DeliveryError", "DeliveryResult", "SmsNotifier"]
