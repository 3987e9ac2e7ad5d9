"""設定管理用のデータクラス"""
from dataclasses import dataclass, field
from typing import List, Optional
import json
import os
import re

from ..exceptions import ConfigValidationError
from .transfer import ConflictPolicy, Direction

MAX_CONCURRENCY = 10
DEFAULT_MAX_FILE_SIZE = 2 * 1024 * 1024 * 1024  # 2GB


@dataclass
class LoggingConfig:
    """ロギング設定"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


@dataclass
class SupabaseConfig:
    """Supabase Storage の接続設定"""
    url: str
    service_key: str
    timeout_seconds: int = 30

    def __post_init__(self):
        if not re.match(r'^https?://[^\s/]+', self.url or ""):
            raise ConfigValidationError(
                f"Invalid Supabase url: {self.url!r}. Expected format: https://PROJECT.supabase.co"
            )
        self.url = self.url.rstrip("/")

        if not self.service_key or not self.service_key.strip():
            raise ConfigValidationError("service_key cannot be empty")

        if self.timeout_seconds <= 0:
            raise ConfigValidationError(f"Invalid timeout_seconds: {self.timeout_seconds}")


@dataclass
class R2Config:
    """R2（S3互換ストレージ）の接続設定"""
    access_key_id: str
    secret_access_key: str
    endpoint: Optional[str] = None
    account_id: Optional[str] = None
    region: str = "auto"
    timeout_seconds: int = 30
    max_attempts: int = 3

    def __post_init__(self):
        if not self.access_key_id or not self.secret_access_key:
            raise ConfigValidationError("access_key_id and secret_access_key are required")

        # endpoint 未指定の場合は account_id から組み立てる
        if not self.endpoint:
            if not self.account_id:
                raise ConfigValidationError("Either endpoint or account_id must be set")
            self.endpoint = f"https://{self.account_id}.r2.cloudflarestorage.com"

        if not re.match(r'^https?://', self.endpoint):
            raise ConfigValidationError(f"Invalid endpoint: {self.endpoint!r}")

        if self.max_attempts < 1:
            raise ConfigValidationError(f"Invalid max_attempts: {self.max_attempts}")


@dataclass
class TransferOptions:
    """転送オプション"""
    direction: Direction = Direction.SUPABASE_TO_R2
    selected_containers: List[str] = field(default_factory=list)
    prefix_filter: str = ""
    conflict_policy: ConflictPolicy = ConflictPolicy.SKIP
    concurrency: int = 4
    dry_run: bool = True
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    verify_integrity: bool = True
    dry_run_delay: float = 0.1  # 秒
    multipart_threshold: int = 100 * 1024 * 1024  # 100MB
    multipart_chunksize: int = 10 * 1024 * 1024  # 10MB

    def __post_init__(self):
        """転送オプションのバリデーション"""
        try:
            self.direction = Direction(self.direction)
        except ValueError:
            raise ConfigValidationError(
                f"Invalid direction: {self.direction!r}. "
                f"Expected one of: {', '.join(d.value for d in Direction)}"
            )

        try:
            self.conflict_policy = ConflictPolicy(self.conflict_policy)
        except ValueError:
            raise ConfigValidationError(
                f"Invalid conflict_policy: {self.conflict_policy!r}. "
                f"Expected one of: {', '.join(p.value for p in ConflictPolicy)}"
            )

        if not isinstance(self.selected_containers, list) or not self.selected_containers:
            raise ConfigValidationError("selected_containers must list at least one container")

        if any(not isinstance(name, str) or not name.strip() for name in self.selected_containers):
            raise ConfigValidationError("Container names cannot be empty")

        # 並列数は 1〜10
        if not (1 <= self.concurrency <= MAX_CONCURRENCY):
            raise ConfigValidationError(
                f"Invalid concurrency: {self.concurrency}. Must be between 1 and {MAX_CONCURRENCY}"
            )

        if self.max_file_size <= 0:
            raise ConfigValidationError(f"Invalid max_file_size: {self.max_file_size}")

        if self.dry_run_delay < 0:
            raise ConfigValidationError(f"Invalid dry_run_delay: {self.dry_run_delay}")

        self.prefix_filter = self.prefix_filter or ""


@dataclass
class Config:
    """メイン設定クラス"""
    logging: LoggingConfig
    supabase: SupabaseConfig
    r2: R2Config
    options: TransferOptions

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        """辞書から設定を作成"""
        try:
            return cls(
                logging=LoggingConfig(**data.get("logging", {})),
                supabase=SupabaseConfig(**data.get("supabase", {})),
                r2=R2Config(**data.get("r2", {})),
                options=TransferOptions(**data.get("options", {})),
            )
        except TypeError as e:
            # 必須キーの欠落や未知のキー
            raise ConfigValidationError(f"Invalid configuration: {e}")

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """設定ファイルから読み込み"""
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file {config_path} not found.")

        try:
            with open(config_path, "r", encoding="utf-8") as file:
                data = json.load(file)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Error decoding JSON from {config_path}: {e}")

        if not isinstance(data, dict):
            raise ConfigValidationError(f"Top level of {config_path} must be an object")

        return cls.from_dict(data)
