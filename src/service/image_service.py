import os
import uuid
from typing import BinaryIO, Protocol

from loguru import logger

from core.exceptions import (
    AppException,
    FileTooLarge,
    ImageNotFound,
    ImageNotProcessed,
    InvalidFormat,
    InvalidProcessingType,
    ObjectNotFound,
)
from model.image import ImageRecord, ProcessingStatus, ProcessingType
from repository.image_repository import ImageRepository
from storage.base import AssetStore

DEFAULT_LIST_LIMIT = 10
MAX_LIST_LIMIT = 100


class TaskPublisher(Protocol):
    def publish(self, image_id: str, processing_type: str) -> str: ...


def normalize_page(limit: int, offset: int) -> tuple[int, int]:
    """실제로 적용되는 (limit, offset). limit <= 0 이면 기본값, 최대 MAX_LIST_LIMIT, 음수 offset 은 0."""
    if limit <= 0:
        limit = DEFAULT_LIST_LIMIT
    return min(limit, MAX_LIST_LIMIT), max(offset, 0)


class ImageService:
    """업로드/조회/삭제 담당. 이미지 레코드의 유일한 소유자.

    저장소와 DB 사이에 트랜잭션은 없다. 업로드 중 DB 기록이 실패하면
    방금 저장한 원본을 지우는 보상 동작으로 일관성을 맞춘다.
    """

    def __init__(
        self,
        repository: ImageRepository,
        storage: AssetStore,
        publisher: TaskPublisher,
        max_upload_size: int,
        supported_formats: list[str],
    ):
        self.repository = repository
        self.storage = storage
        self.publisher = publisher
        self.max_upload_size = max_upload_size
        self.supported_formats = {fmt.lower() for fmt in supported_formats}

    def upload_image(
        self,
        filename: str,
        mime_type: str,
        size: int,
        stream: BinaryIO,
        processing_type: str,
    ) -> ImageRecord:
        """원본 저장 -> 레코드(pending) 생성 -> 처리 작업 전송.

        작업 전송 실패는 로그만 남긴다. 레코드는 pending 으로 남아
        외부 재전송(reconciliation)으로 복구할 수 있다.
        """
        try:
            processing_type = ProcessingType(processing_type)
        except ValueError:
            raise InvalidProcessingType from None

        if size > self.max_upload_size:
            raise FileTooLarge(f"파일 크기가 최대 {self.max_upload_size // (1024 * 1024)}MB를 초과합니다")

        ext = os.path.splitext(filename)[1].lower()
        if ext not in self.supported_formats:
            raise InvalidFormat(f"지원하지 않는 형식입니다: {ext or '(없음)'}")

        image_id = str(uuid.uuid4())
        original_path = self.storage.save_original(f"{image_id}{ext}", stream)

        record = ImageRecord(
            id=image_id,
            original_filename=filename,
            original_path=original_path,
            mime_type=mime_type or "application/octet-stream",
            size=size,
            status=ProcessingStatus.PENDING,
            processing_type=processing_type,
        )
        try:
            record = self.repository.create(record)
        except Exception:
            logger.exception(f"failed to create image record {image_id}, removing original")
            self._discard(original_path)
            raise

        try:
            self.publisher.publish(image_id, processing_type)
        except AppException as e:
            logger.error(f"failed to publish processing task for {image_id}, record stays pending: {e}")

        logger.info(f"image uploaded: id={image_id} filename={filename} type={processing_type}")
        return record

    def get_image(self, image_id: str) -> ImageRecord:
        return self.repository.find_by_id(image_id)

    def get_image_file(self, image_id: str, use_original: bool = False) -> tuple[BinaryIO, str]:
        """(바이트 스트림, 다운로드 파일명)을 반환한다. 스트림은 호출자가 닫는다."""
        record = self.repository.find_by_id(image_id)

        if use_original:
            return self._open(record.original_path, self.storage.get_original), record.original_filename

        if not record.is_processed():
            raise ImageNotProcessed

        stream = self._open(record.processed_path, self.storage.get_processed)
        # 확장자는 실제 저장된 processed_path 에서 가져온다
        ext = os.path.splitext(record.processed_path)[1]
        base_name = os.path.splitext(record.original_filename)[0]
        return stream, f"{base_name}_{record.processing_type}{ext}"

    def delete_image(self, image_id: str) -> None:
        record = self.repository.find_by_id(image_id)

        try:
            self.storage.delete_all(record.original_path, record.processed_path)
        except AppException as e:
            logger.error(f"failed to delete files of {image_id}, deleting record anyway: {e}")

        self.repository.delete(image_id)
        logger.info(f"image deleted: {image_id}")

    def list_images(self, limit: int = DEFAULT_LIST_LIMIT, offset: int = 0, status: str | None = None) -> list[ImageRecord]:
        limit, offset = normalize_page(limit, offset)

        if status:
            return self.repository.find_by_status(ProcessingStatus(status), limit, offset)
        return self.repository.find_all(limit, offset)

    def _open(self, path: str, getter) -> BinaryIO:
        try:
            return getter(path)
        except ObjectNotFound as e:
            raise ImageNotFound(f"저장된 파일이 없습니다: {path}") from e

    def _discard(self, path: str) -> None:
        try:
            self.storage.delete(path)
        except AppException as e:
            logger.error(f"failed to remove orphaned original {path}: {e}")
