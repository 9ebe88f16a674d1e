from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from core.wiring import build_services


@asynccontextmanager
async def lifespan(app: FastAPI):
    # === 시작 ===
    settings = app.state.settings
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"storage={settings.STORAGE_TYPE}, queue={settings.REDIS_URL} ({settings.QUEUE_TOPIC})")

    # 테스트 등에서 미리 주입한 services 는 닫지 않는다
    owns_services = app.state.services is None
    if owns_services:
        app.state.services = build_services(settings)

    yield

    # === 종료 ===
    logger.info("Shutting down")
    if owns_services:
        app.state.services.close()
