"""Storage Migrator コアモジュール"""
from .storage_client import StorageClient
from .s3_client import S3ClientManager, S3CompatibleClient
from .supabase_client import SupabaseStorageClient
from .lister import ObjectLister, ScanResult
from .planner import PlanBuilder
from .executor import TransferExecutor
from .session import MigrationSession

__all__ = [
    'StorageClient',
    'S3ClientManager',
    'S3CompatibleClient',
    'SupabaseStorageClient',
    'ObjectLister',
    'ScanResult',
    'PlanBuilder',
    'TransferExecutor',
    'MigrationSession',
]
