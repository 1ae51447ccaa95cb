"""
RabbitMQ Event Publisher
"""
import pika
import json
import uuid
from datetime import datetime, timezone
from typing import Dict

import structlog

from storefront.config import Settings

logger = structlog.get_logger(__name__)

ORDER_CREATED = ("OrderCreated", "order.created")
ORDER_STATUS_CHANGED = ("OrderStatusChanged", "order.status.changed")


class EventPublisher:
    """Publisher for sending order events to RabbitMQ"""

    def __init__(self, config: Settings):
        self.enabled = config.EVENTS_ENABLED
        self.rabbitmq_url = config.RABBITMQ_URL
        self.exchange = config.RABBITMQ_EXCHANGE
        self.source = config.SERVICE_NAME

    def build_event(self, event_type: str, data: Dict) -> Dict:
        return {
            "event_type": event_type,
            "event_id": str(uuid.uuid4()),
            "event_version": "1.0",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": self.source,
            "data": data
        }

    def publish(self, event_type: str, routing_key: str, data: Dict) -> bool:
        """
        Publish an event to the topic exchange

        Returns:
            True if published, False if disabled

        Raises:
            pika.exceptions.AMQPError: On broker failures, so the
                dispatcher can retry
        """
        if not self.enabled:
            return False

        event = self.build_event(event_type, data)

        connection = pika.BlockingConnection(
            pika.URLParameters(self.rabbitmq_url)
        )
        try:
            channel = connection.channel()

            channel.exchange_declare(
                exchange=self.exchange,
                exchange_type='topic',
                durable=True
            )

            # Enable publisher confirms
            channel.confirm_delivery()

            channel.basic_publish(
                exchange=self.exchange,
                routing_key=routing_key,
                body=json.dumps(event, default=str),
                properties=pika.BasicProperties(
                    delivery_mode=2,  # Persistent message
                    content_type='application/json',
                    correlation_id=event["event_id"]
                ),
                mandatory=False
            )
        finally:
            connection.close()

        logger.info("event_published", event_type=event_type, event_id=event["event_id"])
        return True

    def publish_order_created(self, order_data: Dict) -> bool:
        event_type, routing_key = ORDER_CREATED
        return self.publish(event_type, routing_key, order_data)

    def publish_order_status_changed(self, order_data: Dict) -> bool:
        event_type, routing_key = ORDER_STATUS_CHANGED
        return self.publish(event_type, routing_key, order_data)
