"""Message queue connecting the validation stage to the processing stage."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

import boto3
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .config import QueueBackendName, QueueConfig

logger = logging.getLogger(__name__)


class WorkerMessage(BaseModel):
    """Payload telling the processing stage which job to cut.

    Serialized with camelCase keys (``jobId``, ``audioLocation``, ...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: UUID
    audio_location: str
    audio_key: str
    sheet_location: str
    sheet_key: str
    artwork_location: str | None = None
    artwork_key: str | None = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, body: str | bytes) -> WorkerMessage:
        return cls.model_validate_json(body)


@dataclass
class Delivery:
    """One receipt of a message; ``receive_count`` starts at 1."""

    message: WorkerMessage
    receipt: str
    receive_count: int = 1


class JobQueue(Protocol):
    """Protocol for at-least-once message queues."""

    max_receive_count: int

    def send(self, message: WorkerMessage) -> None:
        """Enqueue a message."""
        ...

    def receive(self, max_messages: int = 1) -> list[Delivery]:
        """Receive up to ``max_messages`` deliveries (may be empty)."""
        ...

    def ack(self, delivery: Delivery) -> None:
        """Acknowledge a delivery so it is never redelivered."""
        ...

    def release(self, delivery: Delivery) -> None:
        """Hand a delivery back for redelivery."""
        ...


class LocalQueue:
    """In-process queue with at-least-once semantics and a dead-letter list."""

    def __init__(self, max_receive_count: int = 3):
        self.max_receive_count = max_receive_count
        self._pending: deque[tuple[str, int]] = deque()
        self._bodies: dict[str, str] = {}
        self._in_flight: dict[str, int] = {}
        self.dead_letters: list[WorkerMessage] = []
        self._counter = 0

    def _generate_receipt(self) -> str:
        """Generate a unique receipt handle."""
        self._counter += 1
        timestamp = int(time.time() * 1000)
        return f"msg_{timestamp}_{self._counter}"

    def send(self, message: WorkerMessage) -> None:
        receipt = self._generate_receipt()
        self._bodies[receipt] = message.to_json()
        self._pending.append((receipt, 0))

    def receive(self, max_messages: int = 1) -> list[Delivery]:
        deliveries: list[Delivery] = []
        while self._pending and len(deliveries) < max_messages:
            receipt, previous_receives = self._pending.popleft()
            count = previous_receives + 1
            self._in_flight[receipt] = count
            deliveries.append(
                Delivery(
                    message=WorkerMessage.from_json(self._bodies[receipt]),
                    receipt=receipt,
                    receive_count=count,
                )
            )
        return deliveries

    def ack(self, delivery: Delivery) -> None:
        _ = self._in_flight.pop(delivery.receipt, None)
        _ = self._bodies.pop(delivery.receipt, None)

    def release(self, delivery: Delivery) -> None:
        count = self._in_flight.pop(delivery.receipt, None)
        if count is None:
            return
        if count >= self.max_receive_count:
            logger.warning(
                f"[{delivery.message.job_id}] Diverted to dead letters after {count} receives"
            )
            self.dead_letters.append(WorkerMessage.from_json(self._bodies.pop(delivery.receipt)))
            return
        self._pending.append((delivery.receipt, count))

    def qsize(self) -> int:
        """Number of messages waiting for delivery."""
        return len(self._pending)


class SqsQueue:
    """Amazon SQS backend.

    Dead-lettering after ``max_receive_count`` receives is configured on the
    queue's redrive policy; the value here only informs retry decisions.
    """

    def __init__(self, queue_config: QueueConfig):
        if not queue_config.queue_url:
            raise ValueError("queue_url is required for the SQS backend")
        self.config = queue_config
        self.queue_url = queue_config.queue_url
        self.max_receive_count = queue_config.max_receive_count
        self.sqs_client = boto3.client("sqs", region_name=queue_config.region_name)

    def send(self, message: WorkerMessage) -> None:
        _ = self.sqs_client.send_message(QueueUrl=self.queue_url, MessageBody=message.to_json())

    def receive(self, max_messages: int = 1) -> list[Delivery]:
        response = self.sqs_client.receive_message(
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=max_messages,
            WaitTimeSeconds=self.config.wait_time_seconds,
            VisibilityTimeout=self.config.visibility_timeout_seconds,
            AttributeNames=["ApproximateReceiveCount"],
        )
        deliveries: list[Delivery] = []
        for raw in response.get("Messages", []):
            try:
                message = WorkerMessage.from_json(raw["Body"])
            except ValueError:
                # Poison message: leave it to the redrive policy
                logger.exception(f"Discarding unparseable message {raw.get('MessageId')}")
                continue
            count = int(raw.get("Attributes", {}).get("ApproximateReceiveCount", "1"))
            deliveries.append(
                Delivery(message=message, receipt=raw["ReceiptHandle"], receive_count=count)
            )
        return deliveries

    def ack(self, delivery: Delivery) -> None:
        _ = self.sqs_client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=delivery.receipt)

    def release(self, delivery: Delivery) -> None:
        _ = self.sqs_client.change_message_visibility(
            QueueUrl=self.queue_url,
            ReceiptHandle=delivery.receipt,
            VisibilityTimeout=0,
        )


def create_queue(queue_config: QueueConfig) -> JobQueue:
    """Build the configured queue backend."""
    if queue_config.backend is QueueBackendName.SQS:
        return SqsQueue(queue_config)
    return LocalQueue(queue_config.max_receive_count)
