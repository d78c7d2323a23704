# services/events.py
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from dapr.clients import DaprClient

from ..config import settings

logger = logging.getLogger(__name__)


class EventPublisher:
    def publish(self, topic: str, data: Dict[str, Any]):
        raise NotImplementedError


class DaprEventPublisher(EventPublisher):
    """Fire-and-forget publication on the Dapr pub/sub component"""

    def __init__(self, pubsub_name: Optional[str] = None):
        self.pubsub_name = pubsub_name or settings.PUBSUB_NAME

    def publish(self, topic: str, data: Dict[str, Any]):
        try:
            with DaprClient() as dapr_client:
                dapr_client.publish_event(
                    pubsub_name=self.pubsub_name,
                    topic_name=topic,
                    data=json.dumps(data, default=str),
                    data_content_type="application/json",
                )
            logger.info(f"Event published: {topic}")
        except Exception as e:
            # Publication never fails the request that triggered it
            logger.error(f"Failed to publish {topic} event: {e}")


class InMemoryEventPublisher(EventPublisher):
    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def publish(self, topic: str, data: Dict[str, Any]):
        logger.debug(f"Event recorded: {topic}")
        self.events.append((topic, data))

    def topics(self) -> List[str]:
        return [topic for topic, _ in self.events]
