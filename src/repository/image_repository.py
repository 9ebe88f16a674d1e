"""images 테이블 접근 계층.

조회/저장마다 세션을 새로 열고 expire_on_commit=False 로 닫는다.
반환된 ImageRecord는 세션과 분리된 값 객체처럼 다뤄도 된다.
"""

from loguru import logger
from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlmodel import Session, col, select

from core.exceptions import AlreadyProcessing, ImageNotFound
from model.image import ImageRecord, ProcessingStatus, utcnow


class ImageRepository:
    def __init__(self, engine: Engine):
        self._engine = engine

    def _session(self) -> Session:
        return Session(self._engine, expire_on_commit=False)

    def create(self, record: ImageRecord) -> ImageRecord:
        with self._session() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
        logger.debug(f"image record created: {record.id}")
        return record

    def find_by_id(self, image_id: str) -> ImageRecord:
        with self._session() as session:
            record = session.get(ImageRecord, image_id)
        if record is None:
            raise ImageNotFound
        return record

    def update(self, record: ImageRecord) -> ImageRecord:
        with self._session() as session:
            stored = session.get(ImageRecord, record.id)
            if stored is None:
                raise ImageNotFound
            stored.sqlmodel_update(record.model_dump(exclude={"id", "created_at"}))
            stored.updated_at = utcnow()
            session.add(stored)
            session.commit()
            session.refresh(stored)
        return stored

    def delete(self, image_id: str) -> None:
        with self._session() as session:
            record = session.get(ImageRecord, image_id)
            if record is None:
                raise ImageNotFound
            session.delete(record)
            session.commit()
        logger.debug(f"image record deleted: {image_id}")

    def find_all(self, limit: int, offset: int) -> list[ImageRecord]:
        statement = (
            select(ImageRecord)
            .order_by(col(ImageRecord.created_at).desc())
            .offset(offset)
            .limit(limit)
        )
        with self._session() as session:
            return list(session.exec(statement).all())

    def find_by_status(self, status: ProcessingStatus, limit: int, offset: int) -> list[ImageRecord]:
        statement = (
            select(ImageRecord)
            .where(ImageRecord.status == status)
            .order_by(col(ImageRecord.created_at).desc())
            .offset(offset)
            .limit(limit)
        )
        with self._session() as session:
            return list(session.exec(statement).all())

    def mark_processing(self, image_id: str) -> None:
        """pending/failed 인 레코드만 processing 으로 바꾼다 (compare-and-set).

        같은 이미지의 중복 메시지를 두 워커가 동시에 받아도 한 쪽만 성공한다.
        - 레코드가 없으면 ImageNotFound
        - 다른 상태(processing, completed)면 AlreadyProcessing
        """
        statement = (
            update(ImageRecord)
            .where(col(ImageRecord.id) == image_id)
            .where(col(ImageRecord.status).in_([ProcessingStatus.PENDING, ProcessingStatus.FAILED]))
            .values(status=ProcessingStatus.PROCESSING, error_message=None, updated_at=utcnow())
        )
        with self._session() as session:
            result = session.exec(statement)
            session.commit()
            if result.rowcount == 1:
                return
            exists = session.get(ImageRecord, image_id) is not None

        if not exists:
            raise ImageNotFound
        raise AlreadyProcessing
