"""移行処理で使用する例外クラス"""
from typing import Optional


class MigrationError(Exception):
    """storage_migrator の基底例外"""


class ConfigValidationError(MigrationError, ValueError):
    """設定値が不正（I/O 前に検出、リトライしない）"""


class StorageClientError(MigrationError):
    """ストレージバックエンドとの通信エラー"""

    def __init__(
        self,
        message: str,
        container: Optional[str] = None,
        key: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.container = container
        self.key = key
        self.status_code = status_code


class ObjectExistsError(StorageClientError):
    """上書きなしの書き込みで転送先に既にオブジェクトが存在した"""


class TransferError(MigrationError):
    """転送実行全体を中断する致命的なエラー"""


class InvalidTransitionError(MigrationError):
    """ObjectRecord の不正なステータス遷移"""
