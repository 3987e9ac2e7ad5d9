"""転送方向に応じたストレージクライアントの作成"""
from ..models.config import Config
from ..models.transfer import Backend
from .s3_client import S3CompatibleClient
from .storage_client import StorageClient
from .supabase_client import SupabaseStorageClient


def create_client(backend: Backend, config: Config) -> StorageClient:
    """バックエンド種別からクライアントを作成"""
    if backend is Backend.SUPABASE:
        return SupabaseStorageClient(config.supabase)
    if backend is Backend.R2:
        return S3CompatibleClient.from_config(config.r2, config.options)
    raise ValueError(f"Unsupported backend: {backend}")

