from __future__ import annotations

import io
import logging

import boto3
from botocore.exceptions import NoCredentialsError

from app.config import Settings, get_settings
from app.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class S3Storage:
    def __init__(self: S3Storage, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.s3_client = boto3.client(
            "s3",
            aws_access_key_id=self.settings.aws_access_key_id,
            aws_secret_access_key=self.settings.aws_secret_access_key,
            region_name=self.settings.aws_region,
        )
        self.bucket_name = self.settings.s3_bucket_name

    def upload_bytes(
        self: S3Storage,
        data: bytes,
        object_key: str,
        content_type: str = "image/png",
    ) -> str:
        """
        바이너리 데이터를 S3에 업로드하고 표시용 URL 반환

        Args:
            data: 업로드할 바이트 (이미지, 비디오)
            object_key: S3 저장 경로 (Key)
            content_type: MIME 타입

        Returns:
            업로드된 객체의 URL
        """
        try:
            self.s3_client.upload_fileobj(
                io.BytesIO(data),
                self.bucket_name,
                object_key,
                ExtraArgs={"ContentType": content_type},
            )
            url = (
                f"https://{self.bucket_name}.s3.{self.settings.aws_region}"
                f".amazonaws.com/{object_key}"
            )
            logger.info(f"S3 업로드 성공: {url}")
            return url
        except NoCredentialsError:
            logger.error("AWS 자격 증명 실패")
            raise StorageError("AWS Credentials not found") from None
        except Exception as e:
            logger.error(f"S3 업로드 실패: {e}")
            raise StorageError(f"S3 Upload failed: {str(e)}") from e


# 싱글톤
_storage_instance: S3Storage | None = None


def get_storage() -> S3Storage:
    global _storage_instance
    if _storage_instance is None:
        _storage_instance = S3Storage()
    return _storage_instance
