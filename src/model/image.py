from datetime import UTC, datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel


class ProcessingStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ProcessingType(StrEnum):
    RESIZE = "resize"
    THUMBNAIL = "thumbnail"
    WATERMARK = "watermark"


def utcnow() -> datetime:
    return datetime.now(UTC)


class ImageRecord(SQLModel, table=True):
    """업로드된 이미지 한 장과 그 처리 상태.

    processed_path / width / height 는 status == completed 일 때만 채워지고,
    error_message 는 status == failed 일 때만 의미가 있다.
    """

    __tablename__ = "images"

    id: str = Field(primary_key=True, max_length=36)
    original_filename: str
    original_path: str
    processed_path: str | None = None
    mime_type: str
    size: int
    width: int | None = None
    height: int | None = None
    status: str = Field(default=ProcessingStatus.PENDING, index=True)  # pending, processing, completed, failed
    processing_type: str
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
    processed_at: datetime | None = None

    def is_processed(self) -> bool:
        return self.status == ProcessingStatus.COMPLETED

    def is_failed(self) -> bool:
        return self.status == ProcessingStatus.FAILED

    def can_be_processed(self) -> bool:
        return self.status in (ProcessingStatus.PENDING, ProcessingStatus.FAILED)

    def mark_as_processing(self) -> None:
        self.status = ProcessingStatus.PROCESSING
        self.error_message = None
        self.updated_at = utcnow()

    def mark_as_completed(self, processed_path: str, width: int, height: int) -> None:
        now = utcnow()
        self.status = ProcessingStatus.COMPLETED
        self.processed_path = processed_path
        self.width = width
        self.height = height
        self.error_message = None
        if self.processed_at is None:
            self.processed_at = now
        self.updated_at = now

    def mark_as_failed(self, error_message: str) -> None:
        self.status = ProcessingStatus.FAILED
        self.error_message = error_message
        self.processed_path = None
        self.width = None
        self.height = None
        self.updated_at = utcnow()
