from loguru import logger

from core.config import Settings
from storage.base import AssetStore
from storage.local import LocalAssetStore
from storage.s3 import S3AssetStore, build_s3_client


def create_asset_store(settings: Settings) -> AssetStore:
    """STORAGE_TYPE 설정으로 저장소 구현을 고른다."""
    storage_type = settings.STORAGE_TYPE.lower()

    if storage_type == "local":
        logger.info(f"Initializing local storage at {settings.STORAGE_LOCAL_PATH}")
        return LocalAssetStore(
            settings.STORAGE_LOCAL_PATH,
            settings.STORAGE_ORIGINAL_DIR,
            settings.STORAGE_PROCESSED_DIR,
        )

    if storage_type == "s3":
        logger.info(f"Initializing S3 storage (bucket={settings.S3_BUCKET}, endpoint={settings.S3_ENDPOINT_URL})")
        client = build_s3_client(
            settings.S3_ENDPOINT_URL,
            settings.S3_ACCESS_KEY,
            settings.S3_SECRET_KEY,
            settings.S3_REGION,
            settings.S3_MAX_ATTEMPTS,
        )
        store = S3AssetStore(
            client,
            settings.S3_BUCKET,
            settings.STORAGE_ORIGINAL_DIR,
            settings.STORAGE_PROCESSED_DIR,
        )
        store.ensure_bucket(settings.S3_REGION)
        return store

    raise ValueError(f"unsupported STORAGE_TYPE: {settings.STORAGE_TYPE} (use 'local' or 's3')")
