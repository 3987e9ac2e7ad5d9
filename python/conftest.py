"""テスト共通のフィクスチャ"""
import threading
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Tuple

import pytest

from storage_migrator.core.storage_client import StorageClient
from storage_migrator.exceptions import ObjectExistsError, StorageClientError
from storage_migrator.models.config import Config, LoggingConfig
from storage_migrator.models.transfer import Backend, ObjectInfo, ObjectRecord
from storage_migrator.utils.logger import LoggerManager

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(autouse=True, scope="session")
def logger():
    return LoggerManager.setup(LoggingConfig(level="DEBUG"))


class FakeStorageClient(StorageClient):
    """メモリ上のストレージ（呼び出し履歴を記録する）"""

    def __init__(self, backend: Backend):
        super().__init__()
        self.backend = backend
        self.objects: Dict[str, Dict[str, Tuple[bytes, ObjectInfo]]] = {}
        self.calls: List[Tuple[str, ...]] = []
        self.fast_available = False
        self.fast_rows: Optional[Dict[str, List[ObjectInfo]]] = None
        self.fail_fast = False
        self.fail_list = set()
        self.fail_head = set()
        self.fail_get = set()
        self.extra_infos: Dict[str, List[ObjectInfo]] = {}
        self._lock = threading.Lock()

    def add(self, container: str, key: str, data: bytes = b"", last_modified=BASE_TIME,
            content_type: Optional[str] = None) -> None:
        info = ObjectInfo(key=key, size_bytes=len(data), last_modified=last_modified,
                          content_type=content_type)
        self.objects.setdefault(container, {})[key] = (data, info)

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def list_containers(self) -> List[str]:
        self._record("list_containers")
        return sorted(self.objects)

    def list_objects(self, container: str, prefix: str = "") -> Iterator[ObjectInfo]:
        self._record("list_objects", container, prefix)
        if container in self.fail_list:
            raise StorageClientError(f"listing failed: {container}", container=container)
        for key, (_, info) in sorted(self.objects.get(container, {}).items()):
            if key.startswith(prefix):
                yield info
        yield from self.extra_infos.get(container, [])

    def probe_fast_listing(self) -> bool:
        self._record("probe_fast_listing")
        return self.fast_available

    def list_objects_fast(self, container: str, prefix: str = "") -> Iterator[ObjectInfo]:
        self._record("list_objects_fast", container, prefix)
        if self.fail_fast:
            raise StorageClientError("permission denied for schema storage")
        rows = (self.fast_rows or {}).get(container)
        if rows is None:
            rows = [info for key, (_, info) in sorted(self.objects.get(container, {}).items())]
        return iter([info for info in rows if info.key.startswith(prefix)])

    def head_object(self, container: str, key: str) -> Optional[ObjectInfo]:
        self._record("head_object", container, key)
        if key in self.fail_head:
            raise StorageClientError("head failed", container=container, key=key)
        entry = self.objects.get(container, {}).get(key)
        return entry[1] if entry else None

    def get_object(self, container: str, key: str) -> bytes:
        self._record("get_object", container, key)
        if key in self.fail_get:
            raise StorageClientError(f"download failed: {key}", container=container, key=key)
        return self.objects[container][key][0]

    def put_object(self, container, key, data, content_type=None, overwrite=False, callback=None):
        self._record("put_object", container, key, overwrite, content_type)
        with self._lock:
            if not overwrite and key in self.objects.get(container, {}):
                raise ObjectExistsError(f"Object already exists at destination: {container}/{key}")
            info = ObjectInfo(key=key, size_bytes=len(data), last_modified=BASE_TIME,
                              content_type=content_type)
            self.objects.setdefault(container, {})[key] = (data, info)
        if callback:
            callback(len(data))


@pytest.fixture
def source():
    return FakeStorageClient(Backend.SUPABASE)


@pytest.fixture
def destination():
    return FakeStorageClient(Backend.R2)


def make_record(key: str, size: int, container: str = "media", **kwargs) -> ObjectRecord:
    return ObjectRecord(
        container=container,
        key=key,
        size_bytes=size,
        source_backend=Backend.SUPABASE,
        destination_backend=Backend.R2,
        last_modified=kwargs.pop("last_modified", BASE_TIME),
        **kwargs,
    )


def make_config(**options) -> Config:
    data = {
        "supabase": {"url": "https://example.supabase.co", "service_key": "service-key"},
        "r2": {"account_id": "acc123", "access_key_id": "AKID", "secret_access_key": "secret"},
        "options": {"selected_containers": ["media"], "dry_run_delay": 0, **options},
    }
    return Config.from_dict(data)
