"""Delivery of routing alerts."""

import logging
from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

import httpx

from leadops.config import settings
from leadops.schemas.routing import RoutingAlert

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """Destination for routing alerts. send() reports failure instead of raising."""

    @abstractmethod
    async def send(self, alert: RoutingAlert, lead_id: Optional[UUID] = None) -> bool:
        pass


class LoggingNotificationSink(NotificationSink):
    """Writes alerts to the application log."""

    async def send(self, alert: RoutingAlert, lead_id: Optional[UUID] = None) -> bool:
        logger.info(f"[{alert.type.value}] {alert.message} (lead: {lead_id}, target: {alert.target})")
        return True


class WebhookNotificationSink(NotificationSink):
    """POSTs alerts as JSON to the alert's webhook, or ALERT_WEBHOOK_URL."""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or settings.ALERT_WEBHOOK_URL
        self.timeout = timeout or settings.ALERT_WEBHOOK_TIMEOUT_SECONDS
        self.transport = transport

    async def send(self, alert: RoutingAlert, lead_id: Optional[UUID] = None) -> bool:
        url = alert.target or self.url
        if not url:
            logger.warning(f"No webhook URL for {alert.type.value} alert: {alert.message}")
            return False

        payload = {
            "type": alert.type.value,
            "message": alert.message,
            "lead_id": str(lead_id) if lead_id else None,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()

            logger.info(f"Alert delivered to {url} (status {response.status_code})")
            return True
        except httpx.HTTPError as e:
            logger.error(f"Alert delivery to {url} failed: {e}")
            return False
