from datetime import datetime

from pydantic import BaseModel

from model.image import ImageRecord


class ImageResponse(BaseModel):
    id: str
    original_filename: str
    mime_type: str
    size: int
    width: int | None = None
    height: int | None = None
    status: str
    processing_type: str
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime
    processed_at: datetime | None = None

    original_url: str
    processed_url: str | None = None

    @classmethod
    def from_record(cls, record: ImageRecord, base_url: str) -> "ImageResponse":
        base_url = base_url.rstrip("/")
        return cls(
            **record.model_dump(exclude={"original_path", "processed_path"}),
            original_url=f"{base_url}/image/{record.id}/original",
            processed_url=f"{base_url}/image/{record.id}" if record.is_processed() else None,
        )


class ImageListResponse(BaseModel):
    images: list[ImageResponse]
    total: int
    limit: int
    offset: int
