from loguru import logger
from redis.exceptions import RedisError

from core.exceptions import QueueFailed
from dispatch.streams import PAYLOAD_FIELD, stream_key_for
from model.task import ProcessTask
from utility.retry import RetryStrategy, call_with_retry


class TaskPublisher:
    """ProcessTask 를 Redis Stream 에 XADD 한다."""

    def __init__(self, client, topic: str, partitions: int = 1, strategy: RetryStrategy | None = None):
        self.client = client
        self.topic = topic
        self.partitions = partitions
        self.strategy = strategy or RetryStrategy()

    def publish(self, image_id: str, processing_type: str) -> str:
        """메시지 ID 를 반환한다. 재시도를 모두 소진하면 QueueFailed."""
        task = ProcessTask(image_id=image_id, processing_type=processing_type)
        stream = stream_key_for(self.topic, self.partitions, image_id)

        try:
            message_id = call_with_retry(
                lambda: self.client.xadd(stream, {PAYLOAD_FIELD: task.to_wire()}),
                self.strategy,
                retry_on=(RedisError,),
                label=f"publish {image_id}",
            )
        except RedisError as e:
            raise QueueFailed(f"작업 전송 실패: {e}") from e

        logger.info(f"task published: image_id={image_id} type={task.processing_type} stream={stream} id={message_id}")
        return message_id

    def close(self) -> None:
        self.client.close()
