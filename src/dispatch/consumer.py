"""Redis Streams 컨슈머 그룹 기반 작업 수신 루프.

전달 보장은 at-least-once 이다.
- 핸들러가 성공해야 XACK 한다
- 실패한 메시지는 PEL(pending entries list)에 남고, claim_idle_ms 가 지나면
  XAUTOCLAIM 으로 다시 가져와 재처리한다
- 형식이 잘못된 메시지는 로그만 남기고 ACK 해서 버린다
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger
from pydantic import ValidationError
from redis.exceptions import RedisError, ResponseError

from dispatch.streams import PAYLOAD_FIELD, stream_keys
from model.task import ProcessTask
from utility.retry import RetryStrategy, call_with_retry

FETCH_ERROR_PAUSE_SECONDS = 1.0

TaskHandler = Callable[[ProcessTask], None]


@dataclass
class StreamMessage:
    stream: str
    message_id: str
    fields: dict = field(default_factory=dict)
    redelivered: bool = False


class TaskConsumer:
    def __init__(
        self,
        client,
        topic: str,
        group: str,
        consumer_name: str,
        handler: TaskHandler,
        partitions: int = 1,
        strategy: RetryStrategy | None = None,
        block_ms: int = 5000,
        claim_idle_ms: int = 60000,
        max_deliveries: int = 0,
    ):
        self.client = client
        self.streams = stream_keys(topic, partitions)
        self.group = group
        self.consumer_name = consumer_name
        self.handler = handler
        self.strategy = strategy or RetryStrategy()
        self.block_ms = block_ms
        self.claim_idle_ms = claim_idle_ms
        self.max_deliveries = max_deliveries

    def ensure_groups(self) -> None:
        for stream in self.streams:
            try:
                self.client.xgroup_create(stream, self.group, id="0", mkstream=True)
                logger.info(f"consumer group created: {self.group} on {stream}")
            except ResponseError as e:
                if "BUSYGROUP" not in str(e):
                    raise

    def run(self, stop_event: threading.Event) -> None:
        """stop_event 가 설정될 때까지 메시지를 하나씩 처리한다.

        중단 신호는 메시지 사이에서만 확인한다. 이미 시작한 핸들러 호출은 끝까지 실행된다.
        """
        self.ensure_groups()
        logger.info(f"consumer started: group={self.group} consumer={self.consumer_name} streams={self.streams}")

        while not stop_event.is_set():
            try:
                messages = call_with_retry(self._fetch, self.strategy, retry_on=(RedisError,), label="fetch")
            except RedisError as e:
                logger.error(f"failed to fetch task: {e}")
                stop_event.wait(FETCH_ERROR_PAUSE_SECONDS)
                continue

            for message in messages:
                if stop_event.is_set():
                    # 남은 메시지는 ACK 되지 않았으므로 나중에 다시 전달된다
                    break
                self.dispatch(message)

        logger.info("consumer stopped")

    def dispatch(self, message: StreamMessage) -> bool:
        """메시지 하나를 처리한다. ACK 했으면 True."""
        if message.redelivered and self._exceeded_deliveries(message):
            self._ack(message)
            return True

        try:
            task = ProcessTask.from_wire(message.fields.get(PAYLOAD_FIELD) or "")
        except ValidationError as e:
            logger.error(f"dropping malformed message {message.message_id}: {e.errors(include_url=False)}")
            self._ack(message)
            return True

        logger.info(
            f"task received: image_id={task.image_id} type={task.processing_type} "
            f"id={message.message_id}{' (redelivered)' if message.redelivered else ''}"
        )

        try:
            self.handler(task)
        except Exception as e:
            logger.error(f"task failed, leaving unacknowledged for redelivery: image_id={task.image_id}: {e}")
            return False

        self._ack(message)
        logger.info(f"task processed and acknowledged: image_id={task.image_id}")
        return True

    def _fetch(self) -> list[StreamMessage]:
        claimed = self._claim_stale()
        if claimed:
            return claimed
        return self._read_new()

    def _claim_stale(self) -> list[StreamMessage]:
        messages = []
        for stream in self.streams:
            response = self.client.xautoclaim(
                stream,
                self.group,
                self.consumer_name,
                min_idle_time=self.claim_idle_ms,
                start_id="0-0",
                count=1,
            )
            for message_id, fields in response[1]:
                messages.append(StreamMessage(stream, message_id, fields or {}, redelivered=True))
            if messages:
                break
        return messages

    def _read_new(self) -> list[StreamMessage]:
        response = self.client.xreadgroup(
            self.group,
            self.consumer_name,
            {stream: ">" for stream in self.streams},
            count=1,
            block=self.block_ms,
        )
        messages = []
        for stream, entries in response or []:
            for message_id, fields in entries:
                messages.append(StreamMessage(stream, message_id, fields or {}))
        return messages

    def _exceeded_deliveries(self, message: StreamMessage) -> bool:
        if self.max_deliveries <= 0:
            return False
        try:
            pending = self.client.xpending_range(
                message.stream,
                self.group,
                min=message.message_id,
                max=message.message_id,
                count=1,
            )
        except RedisError as e:
            logger.warning(f"could not read delivery count for {message.message_id}: {e}")
            return False

        deliveries = pending[0]["times_delivered"] if pending else 0
        if deliveries > self.max_deliveries:
            logger.error(
                f"dropping message {message.message_id} after {deliveries} deliveries "
                f"(max {self.max_deliveries}): {message.fields.get(PAYLOAD_FIELD)}"
            )
            return True
        return False

    def _ack(self, message: StreamMessage) -> None:
        try:
            self.client.xack(message.stream, self.group, message.message_id)
        except RedisError as e:
            logger.error(f"failed to acknowledge {message.message_id}: {e}")
