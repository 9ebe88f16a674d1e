"""설정으로부터 협력 객체를 조립한다.

전역 싱글턴 없이 api(lifespan)와 worker(runner)가 각각 한 번씩 호출하고,
만들어진 객체는 생성자 인자로 전달된다.
"""

import os
import socket
from dataclasses import dataclass

import redis
from loguru import logger
from sqlalchemy.engine import Engine

from core.config import Settings
from dispatch.consumer import TaskConsumer
from dispatch.producer import TaskPublisher
from model.database import build_engine, create_db_and_tables
from processor.engine import ImageProcessor, ProcessingConfig
from repository.image_repository import ImageRepository
from service.image_service import ImageService
from service.processor_service import ProcessorService
from storage.base import AssetStore
from storage.factory import create_asset_store
from utility.retry import RetryStrategy
from worker.image_worker import ImageWorker


@dataclass
class Services:
    engine: Engine
    repository: ImageRepository
    storage: AssetStore
    publisher: TaskPublisher
    image_service: ImageService

    def close(self) -> None:
        self.publisher.close()
        self.engine.dispose()
        logger.info("resources closed")


def retry_strategy(settings: Settings) -> RetryStrategy:
    return RetryStrategy(
        attempts=settings.RETRY_ATTEMPTS,
        delay=settings.RETRY_DELAY_SECONDS,
        backoff=settings.RETRY_BACKOFF,
    )


def build_redis(settings: Settings) -> redis.Redis:
    return redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)


def build_services(settings: Settings) -> Services:
    engine = build_engine(settings.DATABASE_URL)
    create_db_and_tables(engine)
    logger.info(f"Database ready ({settings.DATABASE_URL})")

    repository = ImageRepository(engine)
    storage = create_asset_store(settings)
    publisher = TaskPublisher(
        build_redis(settings),
        settings.QUEUE_TOPIC,
        settings.QUEUE_PARTITIONS,
        retry_strategy(settings),
    )
    image_service = ImageService(
        repository,
        storage,
        publisher,
        max_upload_size=settings.max_upload_size_bytes,
        supported_formats=settings.SUPPORTED_FORMATS,
    )
    return Services(engine, repository, storage, publisher, image_service)


def build_consumer(settings: Settings, services: Services) -> TaskConsumer:
    processor = ImageProcessor(ProcessingConfig.from_settings(settings))
    processor_service = ProcessorService(services.repository, services.storage, processor)
    worker = ImageWorker(processor_service)

    consumer_name = settings.QUEUE_CONSUMER_NAME or f"{socket.gethostname()}-{os.getpid()}"
    return TaskConsumer(
        services.publisher.client,
        topic=settings.QUEUE_TOPIC,
        group=settings.QUEUE_GROUP,
        consumer_name=consumer_name,
        handler=worker.handle_task,
        partitions=settings.QUEUE_PARTITIONS,
        strategy=retry_strategy(settings),
        block_ms=settings.QUEUE_BLOCK_MS,
        claim_idle_ms=settings.QUEUE_CLAIM_IDLE_MS,
        max_deliveries=settings.QUEUE_MAX_DELIVERIES,
    )
