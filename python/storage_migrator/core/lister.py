"""転送元オブジェクトの一覧取得

メタデータテーブルによる高速経路を優先し、使えない場合は通常の一覧 API に切り替える。
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..models.transfer import Backend, ObjectInfo, ObjectRecord
from ..utils.logger import SUCCESS, LoggerManager
from .storage_client import StorageClient


@dataclass
class ScanResult:
    """複数コンテナのスキャン結果"""
    records: List[ObjectRecord] = field(default_factory=list)
    failed_containers: List[str] = field(default_factory=list)
    fast_path_available: bool = False

    @property
    def warnings(self) -> List[str]:
        return [
            f"Listing failed for container {name}; it contributes no objects to the plan"
            for name in self.failed_containers
        ]


class ObjectLister:
    """コンテナ内の転送候補オブジェクトを列挙"""

    def __init__(self, source: StorageClient, destination_backend: Backend):
        self.source = source
        self.destination_backend = destination_backend
        self.logger = LoggerManager.get_logger()
        self._fast_path: Optional[bool] = None

    def probe_fast_path(self) -> bool:
        """高速経路の可否を確認（結果はキャッシュし、失敗扱いにはしない）"""
        if self._fast_path is not None:
            return self._fast_path

        try:
            available = self.source.probe_fast_listing()
        except Exception as e:
            self.logger.warning(f"Could not verify fast listing, using the listing API: {e}")
            available = False
        else:
            if available:
                self.logger.log(SUCCESS, f"Fast listing is enabled on {self.source.backend.value}")
            elif self.source.backend is Backend.SUPABASE:
                self.logger.warning("Fast listing (storage.objects) not enabled. Falling back to Storage API.")

        self._fast_path = available
        return available

    def list(self, container: str, prefix: str = "") -> List[ObjectRecord]:
        """コンテナ内の全オブジェクトを返す

        Raises:
            StorageClientError: フォールバック経路でも一覧できなかった場合
        """
        if self.probe_fast_path():
            try:
                records = self._to_records(container, self.source.list_objects_fast(container, prefix))
            except Exception as e:
                self.logger.warning(f"Fast listing failed for {container}, falling back: {e}")
            else:
                if records:
                    return records
                # 行レベルセキュリティで行が見えない場合もあるので一覧 API で確認
                self.logger.debug(f"Fast listing returned no rows for {container}, confirming via listing API")

        return self._to_records(container, self.source.list_objects(container, prefix))

    def list_all(self, containers: Iterable[str], prefix: str = "") -> ScanResult:
        """複数コンテナをスキャン（失敗したコンテナは0件として続行）"""
        result = ScanResult(fast_path_available=self.probe_fast_path())

        for container in containers:
            self.logger.info(f"Scanning container: {container}")
            try:
                records = self.list(container, prefix)
            except Exception as e:
                self.logger.error(f"Failed to list objects in container {container}: {e}")
                result.failed_containers.append(container)
                continue

            self.logger.info(f"Found {len(records)} objects in container {container}")
            result.records.extend(records)

        return result

    def _to_records(self, container: str, infos: Iterable[ObjectInfo]) -> List[ObjectRecord]:
        return [
            ObjectRecord(
                container=container,
                key=info.key,
                size_bytes=info.size_bytes,
                last_modified=info.last_modified,
                content_type=info.content_type,
                etag=info.etag,
                source_backend=self.source.backend,
                destination_backend=self.destination_backend,
            )
            for info in infos
            if info.key
        ]
