"""ImageRepository 테스트."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from core.exceptions import ImageNotFound
from model.image import ImageRecord, ProcessingStatus


def _record(created_at: datetime | None = None, status: str = ProcessingStatus.PENDING) -> ImageRecord:
    image_id = str(uuid.uuid4())
    record = ImageRecord(
        id=image_id,
        original_filename="photo.png",
        original_path=f"original/{image_id}.png",
        mime_type="image/png",
        size=123,
        status=status,
        processing_type="resize",
    )
    if created_at is not None:
        record.created_at = created_at
    return record


def test_create_and_find(repository):
    created = repository.create(_record())

    found = repository.find_by_id(created.id)

    assert found.id == created.id
    assert found.status == ProcessingStatus.PENDING
    assert found.processed_path is None


def test_find_unknown(repository):
    with pytest.raises(ImageNotFound):
        repository.find_by_id("missing")


def test_update_persists_state(repository):
    record = repository.create(_record())
    record.mark_as_completed("processed/x.jpg", 10, 20)

    repository.update(record)

    stored = repository.find_by_id(record.id)
    assert stored.status == ProcessingStatus.COMPLETED
    assert (stored.processed_path, stored.width, stored.height) == ("processed/x.jpg", 10, 20)


def test_update_unknown(repository):
    with pytest.raises(ImageNotFound):
        repository.update(_record())


def test_delete(repository):
    record = repository.create(_record())

    repository.delete(record.id)

    with pytest.raises(ImageNotFound):
        repository.find_by_id(record.id)
    with pytest.raises(ImageNotFound):
        repository.delete(record.id)


def test_list_is_newest_first(repository):
    base = datetime(2024, 1, 1, tzinfo=UTC)
    old = repository.create(_record(base))
    new = repository.create(_record(base + timedelta(hours=1)))
    mid = repository.create(_record(base + timedelta(minutes=30)))

    assert [r.id for r in repository.find_all(10, 0)] == [new.id, mid.id, old.id]
    assert [r.id for r in repository.find_all(1, 1)] == [mid.id]


def test_find_by_status(repository):
    repository.create(_record())
    failed = repository.create(_record(status=ProcessingStatus.FAILED))

    result = repository.find_by_status(ProcessingStatus.FAILED, 10, 0)

    assert [r.id for r in result] == [failed.id]


class TestRecordTransitions:
    def test_failed_clears_result_fields(self):
        record = _record()
        record.mark_as_completed("processed/x.jpg", 10, 20)

        record.mark_as_failed("boom")

        assert record.is_failed()
        assert record.can_be_processed()
        assert record.processed_path is None
        assert record.width is None and record.height is None

    def test_processed_at_is_set_once(self):
        record = _record()
        record.mark_as_completed("processed/x.jpg", 10, 20)
        first = record.processed_at

        record.mark_as_completed("processed/x.jpg", 10, 20)

        assert record.processed_at == first

    def test_processing_clears_error(self):
        record = _record()
        record.mark_as_failed("boom")

        record.mark_as_processing()

        assert record.error_message is None
        assert not record.can_be_processed()
