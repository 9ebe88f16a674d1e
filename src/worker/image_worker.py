from loguru import logger

from core.exceptions import ImageNotFound
from model.task import ProcessTask
from service.processor_service import ProcessorService


class ImageWorker:
    """큐에서 받은 ProcessTask 를 ProcessorService 로 넘긴다.

    처리 방식은 레코드의 processing_type 이 기준이다. Task 쪽 값은
    메시지 검증에만 쓰이고, 레코드와 다르면 경고만 남긴다.
    """

    def __init__(self, processor_service: ProcessorService):
        self.processor_service = processor_service

    def handle_task(self, task: ProcessTask) -> None:
        try:
            record = self.processor_service.repository.find_by_id(task.image_id)
            if record.processing_type != task.processing_type:
                logger.warning(
                    f"task type {task.processing_type} differs from record type "
                    f"{record.processing_type} for {task.image_id}, using record"
                )
            self.processor_service.process_image(task.image_id)
        except ImageNotFound:
            # 처리 전(또는 도중)에 삭제된 이미지. 재전달해도 소용없으므로 처리된 것으로 본다
            logger.warning(f"image {task.image_id} no longer exists, dropping task")
