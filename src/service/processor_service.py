"""워커가 호출하는 이미지 처리 상태 머신.

pending/failed -> processing -> completed | failed

각 단계의 실패는 레코드를 failed 로 기록하고 예외를 그대로 올린다.
한 단계만 다시 시도하는 일은 없다. 재시도는 큐의 재전달로만 일어난다.
"""

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import AlreadyProcessing, AppException
from model.image import ImageRecord
from processor.engine import ImageProcessor
from repository.image_repository import ImageRepository
from storage.base import AssetStore
from utility.timer import timer


class ProcessorService:
    def __init__(self, repository: ImageRepository, storage: AssetStore, processor: ImageProcessor):
        self.repository = repository
        self.storage = storage
        self.processor = processor

    def process_image(self, image_id: str) -> None:
        record = self.repository.find_by_id(image_id)

        if not record.can_be_processed():
            logger.warning(f"image {image_id} is {record.status}, skipping")
            return

        # 조건부 UPDATE 로 상태를 선점한다. 동시에 같은 이미지를 받은 다른 워커는 여기서 빠진다.
        try:
            self.repository.mark_processing(image_id)
        except AlreadyProcessing:
            logger.warning(f"image {image_id} was claimed by another worker, skipping")
            return
        record.mark_as_processing()

        logger.info(f"processing image {image_id} ({record.processing_type})")
        with timer(f"process {image_id}") as t:
            self._run(record)
        logger.info(
            f"image processed: id={image_id} path={record.processed_path} "
            f"size={record.width}x{record.height} ({t.elapsed_ms:.0f}ms)"
        )

    def _run(self, record: ImageRecord) -> None:
        try:
            with self.storage.get_original(record.original_path) as stream:
                data = stream.read()
        except (AppException, OSError) as e:
            self._fail(record, f"failed to get original file: {e}")
            raise

        try:
            image = self.processor.decode(data)
        except AppException as e:
            self._fail(record, f"failed to decode original image: {e}")
            raise
        logger.debug(f"decoded {record.id}: {image.width}x{image.height} mode={image.mode}")

        try:
            result = self.processor.process(image, record.processing_type)
        except Exception as e:  # Pillow 내부 오류(ValueError, MemoryError 등)도 failed 로 남긴다
            self._fail(record, f"processing failed: {e}")
            raise

        try:
            encoded = self.processor.encode(result)
        except AppException as e:
            self._fail(record, f"encoding failed: {e}")
            raise

        filename = f"{record.id}_{record.processing_type}{self.processor.OUTPUT_EXTENSION}"
        try:
            processed_path = self.storage.save_processed(filename, encoded)
        except AppException as e:
            self._fail(record, f"failed to save processed file: {e}")
            raise

        record.mark_as_completed(processed_path, result.width, result.height)
        try:
            self.repository.update(record)
        except (AppException, SQLAlchemyError) as e:
            self._fail(record, f"failed to record completion: {e}")
            raise

    def _fail(self, record: ImageRecord, message: str) -> None:
        logger.error(f"image {record.id} failed: {message}")
        record.mark_as_failed(message)
        try:
            self.repository.update(record)
        except (AppException, SQLAlchemyError) as e:
            logger.error(f"could not persist failed status for {record.id}: {e}")
