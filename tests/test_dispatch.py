"""Redis Streams producer/consumer 테스트.

실제 Redis 대신 호출을 기록하는 가짜 클라이언트를 쓴다.
"""

import json
import threading

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from core.exceptions import QueueFailed
from dispatch.consumer import StreamMessage, TaskConsumer
from dispatch.producer import TaskPublisher
from dispatch.streams import PAYLOAD_FIELD, stream_key_for, stream_keys
from utility.retry import RetryStrategy

NO_WAIT = RetryStrategy(attempts=3, delay=0, backoff=1)


class FakeRedis:
    def __init__(self):
        self.added: list[tuple[str, dict]] = []
        self.acked: list[tuple[str, str, str]] = []
        self.groups: list[tuple[str, str]] = []
        self.xadd_failures = 0
        self.pending_deliveries = 1
        self.claimable: list[tuple[str, dict]] = []
        self.new: list[tuple[str, dict]] = []
        self.closed = False

    def xadd(self, stream, fields):
        if self.xadd_failures:
            self.xadd_failures -= 1
            raise RedisConnectionError("connection refused")
        self.added.append((stream, fields))
        return f"{len(self.added)}-0"

    def xgroup_create(self, stream, group, id="$", mkstream=False):
        if (stream, group) in self.groups:
            raise ResponseError("BUSYGROUP Consumer Group name already exists")
        self.groups.append((stream, group))

    def xautoclaim(self, stream, group, consumer, min_idle_time, start_id="0-0", count=None):
        claimed, self.claimable = self.claimable, []
        return ["0-0", claimed, []]

    def xreadgroup(self, group, consumer, streams, count=None, block=None):
        if not self.new:
            return []
        entries, self.new = self.new, []
        return [[next(iter(streams)), entries]]

    def xpending_range(self, stream, group, min, max, count, consumername=None):
        return [{"message_id": min, "consumer": "c", "time_since_delivered": 0, "times_delivered": self.pending_deliveries}]

    def xack(self, stream, group, *ids):
        for message_id in ids:
            self.acked.append((stream, group, message_id))
        return len(ids)

    def close(self):
        self.closed = True


def _payload(image_id: str = "img-1", processing_type: str = "resize") -> dict:
    return {PAYLOAD_FIELD: json.dumps({"image_id": image_id, "processing_type": processing_type})}


def _consumer(client, handler, **kwargs) -> TaskConsumer:
    return TaskConsumer(client, "tasks", "workers", "worker-1", handler, strategy=NO_WAIT, block_ms=10, **kwargs)


class TestStreams:
    def test_single_partition(self):
        assert stream_keys("tasks", 1) == ["tasks"]
        assert stream_key_for("tasks", 1, "abc") == "tasks"

    def test_partition_is_stable(self):
        keys = stream_keys("tasks", 4)
        key = stream_key_for("tasks", 4, "abc")

        assert keys == ["tasks:0", "tasks:1", "tasks:2", "tasks:3"]
        assert key in keys
        assert stream_key_for("tasks", 4, "abc") == key


class TestTaskPublisher:
    def test_publish(self):
        client = FakeRedis()
        publisher = TaskPublisher(client, "tasks", strategy=NO_WAIT)

        message_id = publisher.publish("img-1", "thumbnail")

        assert message_id == "1-0"
        stream, fields = client.added[0]
        assert stream == "tasks"
        assert json.loads(fields[PAYLOAD_FIELD]) == {"image_id": "img-1", "processing_type": "thumbnail"}

    def test_retries_transient_errors(self):
        client = FakeRedis()
        client.xadd_failures = 2

        TaskPublisher(client, "tasks", strategy=NO_WAIT).publish("img-1", "resize")

        assert len(client.added) == 1

    def test_gives_up_with_queue_failed(self):
        client = FakeRedis()
        client.xadd_failures = 3

        with pytest.raises(QueueFailed):
            TaskPublisher(client, "tasks", strategy=NO_WAIT).publish("img-1", "resize")
        assert client.added == []

    def test_close(self):
        client = FakeRedis()
        TaskPublisher(client, "tasks").close()
        assert client.closed


class TestDispatch:
    def test_success_acks(self):
        client = FakeRedis()
        handled = []
        consumer = _consumer(client, handled.append)

        assert consumer.dispatch(StreamMessage("tasks", "1-0", _payload("img-1", "watermark")))

        assert [(t.image_id, t.processing_type) for t in handled] == [("img-1", "watermark")]
        assert client.acked == [("tasks", "workers", "1-0")]

    @pytest.mark.parametrize(
        "fields",
        [
            {},
            {PAYLOAD_FIELD: "not json"},
            {PAYLOAD_FIELD: json.dumps({"image_id": "", "processing_type": "resize"})},
            {PAYLOAD_FIELD: json.dumps({"image_id": "img-1", "processing_type": "blur"})},
        ],
    )
    def test_malformed_is_dropped(self, fields):
        """잘못된 메시지는 핸들러를 부르지 않고 ACK 해서 버린다."""
        client = FakeRedis()
        handled = []
        consumer = _consumer(client, handled.append)

        assert consumer.dispatch(StreamMessage("tasks", "1-0", fields))

        assert handled == []
        assert client.acked == [("tasks", "workers", "1-0")]

    def test_handler_failure_leaves_unacked(self):
        client = FakeRedis()

        def _fail(task):
            raise RuntimeError("boom")

        assert not _consumer(client, _fail).dispatch(StreamMessage("tasks", "1-0", _payload()))
        assert client.acked == []

    def test_redelivery_over_limit_is_dropped(self):
        client = FakeRedis()
        client.pending_deliveries = 6
        handled = []
        consumer = _consumer(client, handled.append, max_deliveries=5)

        assert consumer.dispatch(StreamMessage("tasks", "1-0", _payload(), redelivered=True))

        assert handled == []
        assert client.acked == [("tasks", "workers", "1-0")]

    def test_no_delivery_limit_by_default(self):
        """기본 설정에서는 여러 번 재전달된 메시지도 버리지 않고 다시 처리한다."""
        client = FakeRedis()
        client.pending_deliveries = 100
        handled = []

        _consumer(client, handled.append).dispatch(StreamMessage("tasks", "1-0", _payload(), redelivered=True))

        assert len(handled) == 1

    def test_redelivery_within_limit_is_handled(self):
        client = FakeRedis()
        client.pending_deliveries = 2
        handled = []

        _consumer(client, handled.append, max_deliveries=5).dispatch(
            StreamMessage("tasks", "1-0", _payload(), redelivered=True)
        )

        assert len(handled) == 1


class TestRun:
    def test_groups_are_created_once(self):
        client = FakeRedis()
        consumer = _consumer(client, lambda task: None)

        consumer.ensure_groups()
        consumer.ensure_groups()

        assert client.groups == [("tasks", "workers")]

    def test_processes_stale_then_new_until_stopped(self):
        """재전달 대상(XAUTOCLAIM)을 먼저, 그다음 새 메시지를 처리한다."""
        client = FakeRedis()
        client.claimable = [("1-0", _payload("stale"))]
        client.new = [("2-0", _payload("fresh"))]
        stop_event = threading.Event()
        handled = []

        def _handle(task):
            handled.append(task.image_id)
            if len(handled) == 2:
                stop_event.set()

        _consumer(client, _handle).run(stop_event)

        assert handled == ["stale", "fresh"]
        assert [ack[2] for ack in client.acked] == ["1-0", "2-0"]

    def test_stops_immediately_when_already_set(self):
        client = FakeRedis()
        client.new = [("1-0", _payload())]
        stop_event = threading.Event()
        stop_event.set()
        handled = []

        _consumer(client, handled.append).run(stop_event)

        assert handled == []
        assert client.acked == []
