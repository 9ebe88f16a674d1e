"""원본/처리 결과 바이트 저장소 인터페이스.

로컬 디스크와 S3 호환 오브젝트 스토리지가 같은 계약을 따른다.
반환하는 키는 항상 "{namespace}/{filename}" 형태의 상대 경로이고,
호출 측은 이 키를 의미 없는 핸들로만 취급한다.
"""

from collections.abc import Callable
from typing import BinaryIO, Protocol

Payload = bytes | BinaryIO


class AssetStore(Protocol):
    def save_original(self, filename: str, data: Payload) -> str: ...

    def save_processed(self, filename: str, data: Payload) -> str: ...

    def get_original(self, path: str) -> BinaryIO: ...

    def get_processed(self, path: str) -> BinaryIO: ...

    def delete(self, path: str | None) -> None: ...

    def delete_all(self, original_path: str | None, processed_path: str | None) -> None: ...


def object_key(namespace: str, filename: str) -> str:
    return f"{namespace.strip('/')}/{filename}"


def read_payload(data: Payload) -> bytes:
    if isinstance(data, bytes):
        return data
    return data.read()


def delete_each(delete: Callable[[str | None], None], *paths: str | None) -> None:
    """모든 경로에 대해 delete를 시도하고, 실패가 있으면 첫 번째 예외를 올린다."""
    first_error: Exception | None = None
    for path in paths:
        try:
            delete(path)
        except Exception as e:
            if first_error is None:
                first_error = e
    if first_error is not None:
        raise first_error
