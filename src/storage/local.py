import os
import shutil
from pathlib import Path
from typing import BinaryIO

from loguru import logger

from core.exceptions import ObjectNotFound, StorageFailed
from storage.base import Payload, delete_each, object_key


class LocalAssetStore:
    """base_path/{original_dir, processed_dir} 아래에 파일로 저장한다."""

    def __init__(self, base_path: str, original_dir: str = "original", processed_dir: str = "processed"):
        if not base_path:
            raise StorageFailed("STORAGE_LOCAL_PATH가 비어 있습니다")
        self.base_path = Path(base_path).resolve()
        self.original_dir = original_dir or "original"
        self.processed_dir = processed_dir or "processed"

        for directory in (self.original_dir, self.processed_dir):
            (self.base_path / directory).mkdir(parents=True, exist_ok=True)

    def save_original(self, filename: str, data: Payload) -> str:
        return self._save(self.original_dir, filename, data)

    def save_processed(self, filename: str, data: Payload) -> str:
        return self._save(self.processed_dir, filename, data)

    def get_original(self, path: str) -> BinaryIO:
        return self._open(path)

    def get_processed(self, path: str) -> BinaryIO:
        return self._open(path)

    def delete(self, path: str | None) -> None:
        if not path:
            return
        full_path = self._resolve(path)
        try:
            os.remove(full_path)
        except FileNotFoundError:
            logger.warning(f"file not found, skipping delete: {path}")
            return
        except OSError as e:
            logger.error(f"failed to delete {full_path}: {e}")
            raise StorageFailed(f"파일 삭제 실패: {path}") from e
        logger.info(f"file deleted: {path}")

    def delete_all(self, original_path: str | None, processed_path: str | None) -> None:
        delete_each(self.delete, original_path, processed_path)

    def _save(self, directory: str, filename: str, data: Payload) -> str:
        key = object_key(directory, filename)
        full_path = self._resolve(key)
        if full_path.exists():
            logger.warning(f"file already exists, overwriting: {key}")

        try:
            with open(full_path, "wb") as f:
                if isinstance(data, bytes):
                    f.write(data)
                else:
                    shutil.copyfileobj(data, f)
                written = f.tell()
        except OSError as e:
            logger.error(f"failed to write {full_path}: {e}")
            raise StorageFailed(f"파일 저장 실패: {key}") from e

        if written == 0:
            full_path.unlink(missing_ok=True)
            raise StorageFailed(f"빈 파일은 저장할 수 없습니다: {key}")

        logger.info(f"file saved: {key} ({written} bytes)")
        return key

    def _open(self, path: str) -> BinaryIO:
        full_path = self._resolve(path)
        try:
            return open(full_path, "rb")
        except FileNotFoundError as e:
            logger.error(f"file not found: {path}")
            raise ObjectNotFound(f"파일을 찾을 수 없습니다: {path}") from e
        except OSError as e:
            logger.error(f"failed to open {full_path}: {e}")
            raise StorageFailed(f"파일 열기 실패: {path}") from e

    def _resolve(self, key: str) -> Path:
        full_path = (self.base_path / key).resolve()
        if not full_path.is_relative_to(self.base_path):
            raise StorageFailed(f"저장소 밖을 가리키는 경로입니다: {key}")
        return full_path
