"""Supabase Storage クライアント

Storage API（REST）と、PostgREST 経由で公開された storage.objects テーブルを扱う。
"""
import re
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Dict, Iterator, List, Optional
from urllib.parse import quote

import requests

from ..exceptions import ObjectExistsError, StorageClientError
from ..models.config import SupabaseConfig
from ..models.transfer import Backend, ObjectInfo
from ..utils.retry import retry_with_backoff
from .storage_client import ProgressCallback, StorageClient

PAGE_SIZE = 1000
STORAGE_PATH = "/storage/v1"
OBJECTS_TABLE_PATH = "/rest/v1/objects"

_FRACTION = re.compile(r"\.(\d+)")
_SHORT_OFFSET = re.compile(r"(:\d{2}(?:\.\d+)?)([+-]\d{2})$")


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """ISO 8601 のタイムスタンプを datetime に変換（解析できなければ None）

    Python 3.10 以前の fromisoformat は小数秒が3桁か6桁の場合しか解析できないので、
    6桁に揃えてから渡す。"+00" 形式のタイムゾーンも "+00:00" に直す。
    """
    if not value:
        return None
    value = value.strip().replace("Z", "+00:00")
    value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    value = _SHORT_OFFSET.sub(r"\1\2:00", value)
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _parse_http_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def _error_message(response: requests.Response) -> str:
    """Storage API のエラーレスポンスからメッセージを取り出す"""
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason or "Unknown error"
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)
    return str(data)


def _is_duplicate(response: requests.Response) -> bool:
    if response.status_code == 409:
        return True
    if response.status_code == 400:
        message = _error_message(response).lower()
        return "duplicate" in message or "already exists" in message
    return False


class SupabaseStorageClient(StorageClient):
    """requests で Supabase Storage を操作する StorageClient 実装"""

    backend = Backend.SUPABASE

    def __init__(self, config: SupabaseConfig, session: Optional[requests.Session] = None):
        super().__init__()
        self.base_url = config.url
        self.timeout = config.timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": config.service_key,
            "Authorization": f"Bearer {config.service_key}",
        })

    def _object_path(self, container: str, key: str) -> str:
        return f"{STORAGE_PATH}/object/{quote(container, safe='')}/{quote(key, safe='/')}"

    def _request(
        self,
        method: str,
        path: str,
        container: Optional[str] = None,
        key: Optional[str] = None,
        **kwargs,
    ) -> requests.Response:
        """HTTP リクエストを送信（通信エラーは StorageClientError に変換）"""
        try:
            return self.session.request(
                method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise StorageClientError(
                f"{method} {path} failed: {e}", container=container, key=key
            ) from e

    def _check(
        self,
        response: requests.Response,
        action: str,
        container: Optional[str] = None,
        key: Optional[str] = None,
    ) -> requests.Response:
        if not response.ok:
            raise StorageClientError(
                f"{action} failed: {_error_message(response)} (Status: {response.status_code})",
                container=container, key=key, status_code=response.status_code,
            )
        return response

    def list_containers(self) -> List[str]:
        response = self._request("GET", f"{STORAGE_PATH}/bucket")
        self._check(response, "List Supabase buckets")
        return [bucket["name"] for bucket in response.json() if bucket.get("name")]

    # ---- 通常の一覧 API（フォールバック経路） ----

    def list_objects(self, container: str, prefix: str = "") -> Iterator[ObjectInfo]:
        # Storage API はフォルダ単位で一覧するので、prefix の親フォルダから辿る
        folder = prefix.rpartition("/")[0]
        yield from self._walk(container, folder, prefix)

    def _walk(self, container: str, folder: str, prefix: str) -> Iterator[ObjectInfo]:
        subfolders: List[str] = []
        offset = 0

        while True:
            body = {
                "prefix": folder,
                "limit": PAGE_SIZE,
                "offset": offset,
                "sortBy": {"column": "name", "order": "asc"},
            }
            response = self._request(
                "POST", f"{STORAGE_PATH}/object/list/{quote(container, safe='')}",
                container=container, json=body,
            )
            self._check(response, f"List objects in bucket {container}", container=container)
            entries = response.json() or []

            for entry in entries:
                name = entry.get("name")
                if not name:
                    continue
                path = f"{folder}/{name}" if folder else name
                # id のないエントリはフォルダ
                if entry.get("id") is None:
                    subfolders.append(path)
                elif path.startswith(prefix):
                    yield self._info_from_entry(path, entry)

            if len(entries) < PAGE_SIZE:
                break
            offset += PAGE_SIZE

        for subfolder in subfolders:
            if subfolder.startswith(prefix) or prefix.startswith(subfolder + "/"):
                yield from self._walk(container, subfolder, prefix)

    @staticmethod
    def _info_from_entry(path: str, entry: Dict) -> ObjectInfo:
        metadata = entry.get("metadata") or {}
        return ObjectInfo(
            key=path,
            size_bytes=int(metadata.get("size") or 0),
            last_modified=_parse_timestamp(entry.get("updated_at") or entry.get("created_at")),
            content_type=metadata.get("mimetype"),
            etag=metadata.get("eTag"),
        )

    # ---- storage.objects テーブル（高速経路） ----

    def probe_fast_listing(self) -> bool:
        """storage.objects を1行だけ問い合わせて高速一覧の可否を確認"""
        def probe() -> requests.Response:
            return self.session.get(
                f"{self.base_url}{OBJECTS_TABLE_PATH}",
                params={"select": "id", "limit": 1},
                headers={"Accept-Profile": "storage"},
                timeout=self.timeout,
            )

        try:
            response = retry_with_backoff(
                probe,
                max_retries=self.probe_max_retries,
                base_delay=self.probe_base_delay,
                retry_on=(requests.ConnectionError, requests.Timeout),
                description="Fast listing probe",
                logger=self.logger,
            )
        except requests.RequestException as e:
            self.logger.debug(f"Fast listing probe failed: {e}")
            return False

        # スキーマ未公開や権限不足は HTTP エラーで返る
        if not response.ok:
            return False
        try:
            rows = response.json()
        except ValueError:
            return False
        return isinstance(rows, list) and len(rows) > 0

    def list_objects_fast(self, container: str, prefix: str = "") -> Iterator[ObjectInfo]:
        offset = 0
        while True:
            params = {
                "select": "name,bucket_id,metadata,updated_at",
                "bucket_id": f"eq.{container}",
                "name": f"like.{prefix}*",
                "order": "name.asc",
                "limit": PAGE_SIZE,
                "offset": offset,
            }
            response = self._request(
                "GET", OBJECTS_TABLE_PATH, container=container,
                params=params, headers={"Accept-Profile": "storage"},
            )
            self._check(response, f"Query storage.objects for bucket {container}", container=container)
            rows = response.json() or []

            for row in rows:
                name = row.get("name")
                # LIKE では "_" や "%" もワイルドカードになるので前方一致を再確認
                if not name or not name.startswith(prefix):
                    continue
                yield self._info_from_entry(name, row)

            if len(rows) < PAGE_SIZE:
                break
            offset += PAGE_SIZE

    # ---- オブジェクト操作 ----

    def head_object(self, container: str, key: str) -> Optional[ObjectInfo]:
        response = self._request("HEAD", self._object_path(container, key), container=container, key=key)
        if response.status_code in (400, 404):
            return None
        self._check(response, f"Read metadata of {container}/{key}", container=container, key=key)

        headers = response.headers
        return ObjectInfo(
            key=key,
            size_bytes=int(headers.get("Content-Length") or 0),
            last_modified=_parse_http_date(headers.get("Last-Modified")),
            content_type=headers.get("Content-Type"),
            etag=headers.get("ETag"),
        )

    def get_object(self, container: str, key: str) -> bytes:
        response = self._request("GET", self._object_path(container, key), container=container, key=key)
        self._check(response, f"Download {container}/{key}", container=container, key=key)
        return response.content

    def put_object(
        self,
        container: str,
        key: str,
        data: bytes,
        content_type: Optional[str] = None,
        overwrite: bool = False,
        callback: Optional[ProgressCallback] = None,
    ) -> None:
        headers = {
            "x-upsert": "true" if overwrite else "false",
            "cache-control": "max-age=3600",
        }
        if content_type:
            headers["content-type"] = content_type

        response = self._request(
            "POST", self._object_path(container, key),
            container=container, key=key, data=data, headers=headers,
        )
        if not overwrite and _is_duplicate(response):
            raise ObjectExistsError(
                f"Object already exists at destination: {container}/{key}",
                container=container, key=key, status_code=response.status_code,
            )
        self._check(response, f"Upload {container}/{key}", container=container, key=key)

        if callback:
            callback(len(data))
