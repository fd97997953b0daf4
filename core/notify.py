from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

import boto3  # type: ignore[import-untyped]

from core.settings import get_settings
from observability.metrics import NOTIFICATION_FAILURES
from storage.keys import utc_now

logger = logging.getLogger(__name__)


@dataclass
class Notifier:
    """Best-effort SNS topic publisher and EventBridge emitter.

    Each call is retried with exponential backoff; the final failure is
    logged and counted, never raised.
    """

    sns_client: Any = None
    events_client: Any = None
    topic_arn: str | None = None
    event_bus_name: str = "default"
    event_source: str = "mdf.submissions"
    max_retries: int = 3
    backoff_factor: float = 0.5

    def _attempt(self, channel: str, call: Callable[[], Any]) -> bool:
        for attempt in range(self.max_retries):
            try:
                call()
                return True
            except Exception:
                if attempt == self.max_retries - 1:
                    NOTIFICATION_FAILURES.labels(channel=channel).inc()
                    logger.error("%s delivery failed", channel, exc_info=True)
                    return False
                time.sleep(self.backoff_factor * (2**attempt))
        return False

    def publish(self, message: str, subject: str) -> bool:
        if self.sns_client is None or not self.topic_arn:
            logger.info("notification skipped (no topic): %s", subject)
            return False
        return self._attempt(
            "sns",
            lambda: self.sns_client.publish(
                TopicArn=self.topic_arn, Message=message, Subject=subject[:100]
            ),
        )

    def emit(self, detail_type: str, detail: dict[str, Any]) -> bool:
        if self.events_client is None:
            logger.info("event skipped (no bus client): %s", detail_type)
            return False
        entry = {
            "Source": self.event_source,
            "DetailType": detail_type,
            "Detail": json.dumps({**detail, "timestamp": utc_now()}),
            "EventBusName": self.event_bus_name,
        }
        return self._attempt(
            "eventbridge", lambda: self.events_client.put_events(Entries=[entry])
        )


_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    global _notifier
    if _notifier is None:
        settings = get_settings()
        _notifier = Notifier(
            sns_client=boto3.client("sns", region_name=settings.aws_region),
            events_client=boto3.client("events", region_name=settings.aws_region),
            topic_arn=settings.notification_topic_arn,
            event_bus_name=settings.event_bus_name,
            event_source=settings.event_source,
            max_retries=settings.notify_max_retries,
            backoff_factor=settings.notify_backoff_factor,
        )
    return _notifier
