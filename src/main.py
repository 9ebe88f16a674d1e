import uvicorn
from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import literal
from sqlmodel import Session, select

from core.config import Settings
from core.error_handlers import app_exception_handler, validation_exception_handler
from core.exceptions import AppException
from core.lifespan import lifespan
from core.middleware import RequestLoggingMiddleware
from core.wiring import Services
from model.database import get_session
from router.image_router import router as image_router
from utility.logger import setup_logger


def create_app(settings: Settings, services: Services | None = None) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="이미지 업로드 → 큐 → 워커 비동기 처리 (resize / thumbnail / watermark)",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.include_router(image_router)

    @app.get("/health")
    def health(session: Session = Depends(get_session)):
        session.exec(select(literal(1))).one()
        return {"status": "ok", "version": settings.APP_VERSION}

    return app


if __name__ == "__main__":
    settings = Settings()
    setup_logger(settings.LOG_LEVEL, process="api")
    uvicorn.run(
        create_app(settings),
        host=settings.HOST,
        port=settings.PORT,
        access_log=False,
    )
