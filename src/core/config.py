from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # 앱 설정
    APP_NAME: str = "imgpipe"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: str = "*"  # 콤마로 구분

    # DB 설정
    DATABASE_URL: str = "sqlite:///./imgpipe.db"

    # 업로드 제한
    MAX_UPLOAD_SIZE_MB: int = 10
    SUPPORTED_FORMATS: list[str] = [".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tiff"]

    # 저장소 설정 (local | s3)
    STORAGE_TYPE: str = "local"
    STORAGE_LOCAL_PATH: str = "./storage"
    STORAGE_ORIGINAL_DIR: str = "original"
    STORAGE_PROCESSED_DIR: str = "processed"

    S3_ENDPOINT_URL: str | None = None
    S3_ACCESS_KEY: str | None = None
    S3_SECRET_KEY: str | None = None
    S3_BUCKET: str = "images"
    S3_REGION: str = "us-east-1"
    S3_MAX_ATTEMPTS: int = 3

    # 큐 설정 (Redis Streams)
    REDIS_URL: str = "redis://localhost:6379/0"
    QUEUE_TOPIC: str = "image-processing"
    QUEUE_PARTITIONS: int = 1
    QUEUE_GROUP: str = "image-workers"
    QUEUE_CONSUMER_NAME: str | None = None  # None이면 hostname-pid
    QUEUE_BLOCK_MS: int = 5000
    QUEUE_CLAIM_IDLE_MS: int = 60000
    QUEUE_MAX_DELIVERIES: int = 0  # 0이면 제한 없음

    # 재시도 (publish / fetch)
    RETRY_ATTEMPTS: int = 3
    RETRY_DELAY_SECONDS: float = 2.0
    RETRY_BACKOFF: float = 2.0

    # 이미지 처리
    RESIZE_WIDTH: int = 800
    RESIZE_HEIGHT: int = 600
    THUMBNAIL_WIDTH: int = 200
    THUMBNAIL_HEIGHT: int = 150
    WATERMARK_IMAGE_PATH: str | None = None
    WATERMARK_OPACITY: int = 128  # 0~255
    OUTPUT_QUALITY: int = 95

    # 워커
    WORKER_SHUTDOWN_GRACE_SECONDS: float = 30.0

    @property
    def max_upload_size_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    model_config = {"env_file": ".env", "extra": "ignore"}
