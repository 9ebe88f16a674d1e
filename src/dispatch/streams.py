import zlib

# Stream 엔트리에서 직렬화된 ProcessTask 를 담는 필드 이름
PAYLOAD_FIELD = "data"


def stream_keys(topic: str, partitions: int) -> list[str]:
    if partitions <= 1:
        return [topic]
    return [f"{topic}:{n}" for n in range(partitions)]


def stream_key_for(topic: str, partitions: int, image_id: str) -> str:
    """같은 image_id 는 항상 같은 파티션으로 간다."""
    if partitions <= 1:
        return topic
    return f"{topic}:{zlib.crc32(image_id.encode()) % partitions}"
