import io
from typing import BinaryIO

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from core.exceptions import ObjectNotFound, StorageFailed
from storage.base import Payload, delete_each, object_key, read_payload

# get_object / head_object 가 "없음"을 알리는 에러 코드
NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404", "NoSuchBucket"}


def build_s3_client(
    endpoint_url: str | None,
    access_key: str | None,
    secret_key: str | None,
    region: str,
    max_attempts: int = 3,
):
    """S3 클라이언트 생성. 일시적인 전송 오류는 botocore가 재시도한다."""
    return boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        region_name=region,
        config=Config(retries={"max_attempts": max_attempts, "mode": "standard"}),
    )


class S3AssetStore:
    """S3 호환 오브젝트 스토리지. 키 형식은 LocalAssetStore와 같다."""

    def __init__(self, client, bucket: str, original_dir: str = "original", processed_dir: str = "processed"):
        if not bucket:
            raise StorageFailed("S3_BUCKET이 비어 있습니다")
        self.client = client
        self.bucket = bucket
        self.original_dir = original_dir or "original"
        self.processed_dir = processed_dir or "processed"

    def ensure_bucket(self, region: str | None = None) -> None:
        """버킷이 없으면 만든다. 생성 실패는 경고만 남긴다 (권한 부족 등)."""
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return
        except ClientError as e:
            if _error_code(e) not in NOT_FOUND_CODES:
                raise StorageFailed(f"버킷 확인 실패: {self.bucket}") from e

        params = {"Bucket": self.bucket}
        if region and region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self.client.create_bucket(**params)
            logger.info(f"created s3 bucket: {self.bucket}")
        except ClientError as e:
            logger.warning(f"unable to create bucket {self.bucket}, make sure it exists: {e}")

    def save_original(self, filename: str, data: Payload) -> str:
        return self._put(self.original_dir, filename, data)

    def save_processed(self, filename: str, data: Payload) -> str:
        return self._put(self.processed_dir, filename, data)

    def get_original(self, path: str) -> BinaryIO:
        return self._get(path)

    def get_processed(self, path: str) -> BinaryIO:
        return self._get(path)

    def delete(self, path: str | None) -> None:
        if not path:
            return
        # S3 delete_object 는 없는 키에도 성공한다
        try:
            self.client.delete_object(Bucket=self.bucket, Key=path)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"failed to delete s3://{self.bucket}/{path}: {e}")
            raise StorageFailed(f"오브젝트 삭제 실패: {path}") from e
        logger.info(f"object deleted: {path}")

    def delete_all(self, original_path: str | None, processed_path: str | None) -> None:
        delete_each(self.delete, original_path, processed_path)

    def _put(self, directory: str, filename: str, data: Payload) -> str:
        key = object_key(directory, filename)
        body = read_payload(data)
        if not body:
            raise StorageFailed(f"빈 파일은 저장할 수 없습니다: {key}")

        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=body)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"failed to put s3://{self.bucket}/{key}: {e}")
            raise StorageFailed(f"오브젝트 저장 실패: {key}") from e

        logger.info(f"object saved: {key} ({len(body)} bytes)")
        return key

    def _get(self, path: str) -> BinaryIO:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=path)
            body = response["Body"].read()
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                logger.error(f"object not found: {path}")
                raise ObjectNotFound(f"오브젝트를 찾을 수 없습니다: {path}") from e
            logger.error(f"failed to get s3://{self.bucket}/{path}: {e}")
            raise StorageFailed(f"오브젝트 조회 실패: {path}") from e
        except BotoCoreError as e:
            logger.error(f"failed to get s3://{self.bucket}/{path}: {e}")
            raise StorageFailed(f"오브젝트 조회 실패: {path}") from e

        return io.BytesIO(body)


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))
