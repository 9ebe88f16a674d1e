"""pytest 공용 fixture.

모든 테스트는 in-memory SQLite DB와 tmp_path 아래의 로컬 저장소를 사용하여 격리된다.
- engine / repository / storage: 인프라 계층
- publisher: 큐 대신 전송된 작업을 기록하는 가짜 publisher
- image_service / processor_service: 실제 서비스 객체
- client: create_app(settings, services) 로 만든 TestClient
"""

import io
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

# src/ 디렉토리를 import path에 추가
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from core.config import Settings
from core.exceptions import QueueFailed
from core.wiring import Services
from main import create_app
from processor.engine import ImageProcessor, ProcessingConfig
from repository.image_repository import ImageRepository
from service.image_service import ImageService
from service.processor_service import ProcessorService
from storage.local import LocalAssetStore

MAX_UPLOAD_SIZE = 1024 * 1024


class RecordingPublisher:
    """publish 호출을 기록한다. fail=True 면 QueueFailed 를 올린다."""

    def __init__(self):
        self.published: list[tuple[str, str]] = []
        self.fail = False
        self.closed = False

    def publish(self, image_id: str, processing_type: str) -> str:
        if self.fail:
            raise QueueFailed("queue unavailable")
        self.published.append((image_id, str(processing_type)))
        return f"{len(self.published)}-0"

    def close(self) -> None:
        self.closed = True


def make_image_bytes(width: int = 100, height: int = 100, fmt: str = "PNG", color: str = "blue") -> bytes:
    """테스트용 이미지를 메모리에서 생성한다."""
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def engine():
    """StaticPool을 사용해야 모든 커넥션이 같은 in-memory DB를 공유한다."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def repository(engine):
    return ImageRepository(engine)


@pytest.fixture()
def storage(tmp_path):
    return LocalAssetStore(str(tmp_path / "storage"))


@pytest.fixture()
def publisher():
    return RecordingPublisher()


@pytest.fixture()
def image_service(repository, storage, publisher):
    return ImageService(
        repository,
        storage,
        publisher,
        max_upload_size=MAX_UPLOAD_SIZE,
        supported_formats=[".jpg", ".jpeg", ".png"],
    )


@pytest.fixture()
def processing_config():
    return ProcessingConfig(thumbnail_width=200, thumbnail_height=150)


@pytest.fixture()
def processor_service(repository, storage, processing_config):
    return ProcessorService(repository, storage, ImageProcessor(processing_config))


@pytest.fixture()
def upload(image_service):
    """이미지를 업로드하고 레코드를 반환하는 헬퍼."""

    def _upload(processing_type: str = "resize", data: bytes | None = None, filename: str = "photo.png"):
        data = data if data is not None else make_image_bytes()
        return image_service.upload_image(filename, "image/png", len(data), io.BytesIO(data), processing_type)

    return _upload


@pytest.fixture()
def client(tmp_path, engine, repository, storage, publisher, image_service):
    settings = Settings(STORAGE_LOCAL_PATH=str(tmp_path / "storage"), DATABASE_URL="sqlite://")
    services = Services(engine, repository, storage, publisher, image_service)
    with TestClient(create_app(settings, services)) as c:
        yield c
