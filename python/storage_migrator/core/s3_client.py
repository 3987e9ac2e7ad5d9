"""S3互換ストレージ（R2）クライアント"""
import io
from typing import Iterator, List, Optional

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from ..exceptions import ObjectExistsError, StorageClientError
from ..models.config import R2Config, TransferOptions
from ..models.transfer import Backend, ObjectInfo
from ..utils.logger import LoggerManager
from .storage_client import ProgressCallback, StorageClient

LIST_PAGE_SIZE = 1000
DEFAULT_CONTENT_TYPE = "application/octet-stream"
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def create_transfer_config(options: TransferOptions) -> TransferConfig:
    """マルチパート転送の設定（オブジェクト間の並列度は TransferExecutor 側で制御）"""
    return TransferConfig(
        multipart_threshold=options.multipart_threshold,
        multipart_chunksize=options.multipart_chunksize,
        max_concurrency=4,
        use_threads=True,
    )


class S3ClientManager:
    """S3クライアントの作成と管理"""

    def __init__(self, r2_config: R2Config):
        self.r2_config = r2_config
        self.logger = LoggerManager.get_logger()
        self._client = None

    def get_client(self):
        """S3クライアントを取得（必要に応じて作成）"""
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self):
        """S3クライアントを作成"""
        config = self.r2_config
        boto_config = BotoConfig(
            region_name=config.region,
            connect_timeout=config.timeout_seconds,
            read_timeout=config.timeout_seconds,
            retries={"max_attempts": config.max_attempts, "mode": "standard"},
            s3={"addressing_style": "path"},
            # R2 は新しいデフォルトのチェックサムヘッダーに対応していない
            request_checksum_calculation="when_required",
            response_checksum_validation="when_required",
        )

        try:
            s3_client = boto3.client(
                's3',
                endpoint_url=config.endpoint,
                aws_access_key_id=config.access_key_id,
                aws_secret_access_key=config.secret_access_key,
                config=boto_config,
            )
            self.logger.info(f"S3 client created for endpoint {config.endpoint}.")
            return s3_client

        except NoCredentialsError:
            self.logger.error("R2 credentials not available.")
            raise
        except Exception as e:
            self.logger.error(f"Error creating S3 client: {e}")
            raise


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _status_code(error: ClientError) -> Optional[int]:
    return error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")


class S3CompatibleClient(StorageClient):
    """boto3 で R2 を操作する StorageClient 実装"""

    backend = Backend.R2

    def __init__(self, s3_client, options: TransferOptions):
        super().__init__()
        self.s3_client = s3_client
        self.transfer_config = create_transfer_config(options)

    @classmethod
    def from_config(cls, r2_config: R2Config, options: TransferOptions) -> "S3CompatibleClient":
        return cls(S3ClientManager(r2_config).get_client(), options)

    def list_containers(self) -> List[str]:
        try:
            response = self.s3_client.list_buckets()
        except (ClientError, BotoCoreError) as e:
            raise StorageClientError(f"Failed to list R2 buckets: {e}") from e
        return [bucket["Name"] for bucket in response.get("Buckets", []) if bucket.get("Name")]

    def list_objects(self, container: str, prefix: str = "") -> Iterator[ObjectInfo]:
        params = {"Bucket": container, "MaxKeys": LIST_PAGE_SIZE}
        if prefix:
            params["Prefix"] = prefix

        while True:
            try:
                response = self.s3_client.list_objects_v2(**params)
            except (ClientError, BotoCoreError) as e:
                raise StorageClientError(
                    f"Failed to list objects in R2 bucket {container}: {e}", container=container
                ) from e

            for obj in response.get("Contents", []):
                # キーのないエントリは無視
                if not obj.get("Key"):
                    continue
                yield ObjectInfo(
                    key=obj["Key"],
                    size_bytes=obj.get("Size", 0),
                    last_modified=obj.get("LastModified"),
                    etag=obj.get("ETag"),
                )

            token = response.get("NextContinuationToken")
            if not response.get("IsTruncated") or not token:
                break
            params["ContinuationToken"] = token

    def head_object(self, container: str, key: str) -> Optional[ObjectInfo]:
        try:
            response = self.s3_client.head_object(Bucket=container, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES or _status_code(e) == 404:
                return None
            raise StorageClientError(
                f"Failed to read metadata of {container}/{key}: {e}",
                container=container, key=key, status_code=_status_code(e),
            ) from e
        except BotoCoreError as e:
            raise StorageClientError(
                f"Failed to read metadata of {container}/{key}: {e}", container=container, key=key
            ) from e

        return ObjectInfo(
            key=key,
            size_bytes=response.get("ContentLength", 0),
            last_modified=response.get("LastModified"),
            content_type=response.get("ContentType"),
            etag=response.get("ETag"),
        )

    def get_object(self, container: str, key: str) -> bytes:
        buffer = io.BytesIO()
        try:
            self.s3_client.download_fileobj(container, key, buffer, Config=self.transfer_config)
        except (ClientError, BotoCoreError) as e:
            raise StorageClientError(
                f"Failed to download {container}/{key}: {e}", container=container, key=key
            ) from e
        return buffer.getvalue()

    def put_object(
        self,
        container: str,
        key: str,
        data: bytes,
        content_type: Optional[str] = None,
        overwrite: bool = False,
        callback: Optional[ProgressCallback] = None,
    ) -> None:
        content_type = content_type or DEFAULT_CONTENT_TYPE
        try:
            if overwrite:
                # 上書き時はマルチパート対応の upload_fileobj を使う
                self.s3_client.upload_fileobj(
                    io.BytesIO(data),
                    container,
                    key,
                    ExtraArgs={"ContentType": content_type},
                    Config=self.transfer_config,
                    Callback=callback,
                )
            else:
                # 条件付き書き込み: 既存オブジェクトがあれば 412 で拒否される
                self.s3_client.put_object(
                    Bucket=container,
                    Key=key,
                    Body=data,
                    ContentType=content_type,
                    IfNoneMatch="*",
                )
                if callback:
                    callback(len(data))
        except ClientError as e:
            if _status_code(e) == 412 or _error_code(e) == "PreconditionFailed":
                raise ObjectExistsError(
                    f"Object already exists at destination: {container}/{key}",
                    container=container, key=key, status_code=412,
                ) from e
            raise StorageClientError(
                f"Failed to upload {container}/{key}: {e}",
                container=container, key=key, status_code=_status_code(e),
            ) from e
        except BotoCoreError as e:
            raise StorageClientError(
                f"Failed to upload {container}/{key}: {e}", container=container, key=key
            ) from e
