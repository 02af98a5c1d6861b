from typing import BinaryIO, Iterator, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from cloudstore.core.config import settings
from cloudstore.core.exceptions import StorageIOException
from cloudstore.storage.base import (
    FOLDER_CONTENT_TYPE,
    ObjectItem,
    ObjectNotFoundError,
    ObjectStat,
    ObjectStore,
)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_BUCKET_MISSING_CODES = {"404", "NoSuchBucket", "NotFound"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3ObjectStore(ObjectStore):
    """
    基于 boto3 的 S3 兼容对象存储（MinIO、AWS S3 等）
    """

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket
        self.region = region
        if client is None:
            client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region,
                config=Config(
                    signature_version="s3v4",
                    s3={"addressing_style": "path"},
                    connect_timeout=settings.STORAGE_CONNECT_TIMEOUT,
                    read_timeout=settings.STORAGE_READ_TIMEOUT,
                    retries={"max_attempts": settings.STORAGE_MAX_ATTEMPTS, "mode": "standard"},
                ),
            )
        self.client = client

    @classmethod
    def from_settings(cls) -> "S3ObjectStore":
        return cls(
            bucket=settings.STORAGE_BUCKET,
            endpoint_url=settings.STORAGE_ENDPOINT,
            access_key=settings.STORAGE_ACCESS_KEY,
            secret_key=settings.STORAGE_SECRET_KEY,
            region=settings.STORAGE_REGION,
        )

    @property
    def backend_name(self) -> str:
        return "s3"

    def bucket_ensure(self) -> None:
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return
        except ClientError as e:
            if _error_code(e) not in _BUCKET_MISSING_CODES:
                raise StorageIOException(f"检查存储桶失败: {self.bucket}") from e
        except BotoCoreError as e:
            raise StorageIOException(f"检查存储桶失败: {self.bucket}") from e

        try:
            params = {"Bucket": self.bucket}
            if self.region and self.region != "us-east-1":
                params["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
            self.client.create_bucket(**params)
            logger.info(f"已创建存储桶: {self.bucket}")
        except ClientError as e:
            # 并发创建时另一方已成功
            if _error_code(e) in {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}:
                return
            raise StorageIOException(f"创建存储桶失败: {self.bucket}") from e
        except BotoCoreError as e:
            raise StorageIOException(f"创建存储桶失败: {self.bucket}") from e

    def put(
        self,
        key: str,
        reader: BinaryIO,
        size: int,
        content_type: Optional[str] = None,
    ) -> None:
        try:
            if size == 0:
                self.client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=b"",
                    ContentType=content_type or FOLDER_CONTENT_TYPE,
                )
                return
            extra_args = {"ContentType": content_type} if content_type else None
            self.client.upload_fileobj(reader, self.bucket, key, ExtraArgs=extra_args)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"写入对象失败: {key}, 错误: {e}")
            raise StorageIOException(f"写入对象失败: {key}") from e

    def stat(self, key: str) -> ObjectStat:
        try:
            response = self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(key) from e
            raise StorageIOException(f"获取对象信息失败: {key}") from e
        except BotoCoreError as e:
            raise StorageIOException(f"获取对象信息失败: {key}") from e
        return ObjectStat(
            key=key,
            size=int(response.get("ContentLength", 0)),
            content_type=response.get("ContentType"),
        )

    def get(self, key: str) -> BinaryIO:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(key) from e
            raise StorageIOException(f"读取对象失败: {key}") from e
        except BotoCoreError as e:
            raise StorageIOException(f"读取对象失败: {key}") from e
        return response["Body"]

    def list(
        self,
        prefix: str,
        delimiter: str = "/",
        recursive: bool = False,
        max_keys: Optional[int] = None,
    ) -> Iterator[ObjectItem]:
        params = {"Bucket": self.bucket, "Prefix": prefix}
        if not recursive:
            params["Delimiter"] = delimiter
        if max_keys is not None:
            params["PaginationConfig"] = {"MaxItems": max_keys}

        returned = 0
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**params):
                for entry in page.get("Contents", []):
                    yield ObjectItem(
                        key=entry["Key"],
                        size=int(entry.get("Size", 0)),
                        is_dir=entry["Key"].endswith("/"),
                    )
                    returned += 1
                    if max_keys is not None and returned >= max_keys:
                        return
                for common in page.get("CommonPrefixes", []):
                    yield ObjectItem(key=common["Prefix"], size=0, is_dir=True)
                    returned += 1
                    if max_keys is not None and returned >= max_keys:
                        return
        except (ClientError, BotoCoreError) as e:
            logger.error(f"列举对象失败: prefix={prefix}, 错误: {e}")
            raise StorageIOException(f"列举对象失败: {prefix}") from e

    def copy(self, src: str, dst: str) -> None:
        try:
            self.client.copy(
                {"Bucket": self.bucket, "Key": src},
                self.bucket,
                dst,
            )
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(src) from e
            logger.error(f"复制对象失败: {src} -> {dst}, 错误: {e}")
            raise StorageIOException(f"复制对象失败: {src}") from e
        except BotoCoreError as e:
            raise StorageIOException(f"复制对象失败: {src}") from e

    def remove(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"删除对象失败: {key}, 错误: {e}")
            raise StorageIOException(f"删除对象失败: {key}") from e
