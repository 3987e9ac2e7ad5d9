"""ストレージクライアントの共通インターフェース"""
from abc import ABC, abstractmethod
from typing import Callable, Iterator, List, Optional, Tuple

from ..models.transfer import Backend, ObjectInfo
from ..utils.logger import LoggerManager
from ..utils.retry import retry_with_backoff

ProgressCallback = Callable[[int], None]


class StorageClient(ABC):
    """バックエンドごとに実装するストレージ操作

    転送処理・計画作成・一覧取得はこのインターフェースだけに依存する。
    """

    backend: Backend

    # 接続確認のリトライ設定
    probe_max_retries: int = 3
    probe_base_delay: float = 1.0

    def __init__(self):
        self.logger = LoggerManager.get_logger()

    @abstractmethod
    def list_containers(self) -> List[str]:
        """コンテナ（バケット）名の一覧"""

    @abstractmethod
    def list_objects(self, container: str, prefix: str = "") -> Iterator[ObjectInfo]:
        """prefix で始まるオブジェクトを列挙（ページングは内部で処理）"""

    @abstractmethod
    def head_object(self, container: str, key: str) -> Optional[ObjectInfo]:
        """オブジェクトのメタデータ（存在しなければ None）"""

    @abstractmethod
    def get_object(self, container: str, key: str) -> bytes:
        """オブジェクトの内容を取得"""

    @abstractmethod
    def put_object(
        self,
        container: str,
        key: str,
        data: bytes,
        content_type: Optional[str] = None,
        overwrite: bool = False,
        callback: Optional[ProgressCallback] = None,
    ) -> None:
        """オブジェクトを書き込む

        overwrite=False の場合、既存オブジェクトがあれば ObjectExistsError を送出する。
        """

    def probe_fast_listing(self) -> bool:
        """高速一覧（メタデータテーブル）が使えるか"""
        return False

    def list_objects_fast(self, container: str, prefix: str = "") -> Iterator[ObjectInfo]:
        raise NotImplementedError(f"{self.backend.value} has no fast listing path")

    def test_connection(self) -> Tuple[bool, Optional[str]]:
        """接続確認（一時的な失敗は指数バックオフでリトライ）"""
        try:
            retry_with_backoff(
                self.list_containers,
                max_retries=self.probe_max_retries,
                base_delay=self.probe_base_delay,
                description=f"{self.backend.value} connection test",
                logger=self.logger,
            )
            return True, None
        except Exception as e:
            return False, str(e)