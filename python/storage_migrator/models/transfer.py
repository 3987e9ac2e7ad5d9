"""転送対象オブジェクト・転送計画・進捗のデータクラス"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from ..exceptions import InvalidTransitionError


class Backend(str, Enum):
    """ストレージバックエンド"""
    SUPABASE = "supabase"
    R2 = "r2"


class Direction(str, Enum):
    """転送方向"""
    SUPABASE_TO_R2 = "supabase-to-r2"
    R2_TO_SUPABASE = "r2-to-supabase"

    @property
    def source(self) -> Backend:
        return Backend.SUPABASE if self is Direction.SUPABASE_TO_R2 else Backend.R2

    @property
    def destination(self) -> Backend:
        return Backend.R2 if self is Direction.SUPABASE_TO_R2 else Backend.SUPABASE


class ConflictPolicy(str, Enum):
    """転送先に同名オブジェクトがある場合の方針"""
    SKIP = "skip"
    OVERWRITE_NEWER = "overwrite-newer"
    ALWAYS_OVERWRITE = "always-overwrite"


class Action(str, Enum):
    COPY = "copy"
    SKIP = "skip"
    OVERWRITE = "overwrite"


class TransferStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({
    TransferStatus.COMPLETED,
    TransferStatus.FAILED,
    TransferStatus.SKIPPED,
})

# 許可されるステータス遷移（終端状態からは遷移しない）
_ALLOWED_TRANSITIONS = {
    TransferStatus.PENDING: frozenset({TransferStatus.IN_PROGRESS, TransferStatus.SKIPPED}),
    TransferStatus.IN_PROGRESS: _TERMINAL_STATUSES,
}


@dataclass(frozen=True)
class ObjectInfo:
    """ストレージクライアントが返すオブジェクト情報"""
    key: str
    size_bytes: int
    last_modified: Optional[datetime] = None
    content_type: Optional[str] = None
    etag: Optional[str] = None


@dataclass
class ObjectRecord:
    """転送候補となる1オブジェクト"""
    # 必須フィールド
    container: str
    key: str
    size_bytes: int
    source_backend: Backend
    destination_backend: Backend

    # オプションフィールド
    last_modified: Optional[datetime] = None
    content_type: Optional[str] = None
    etag: Optional[str] = None
    action: Action = Action.COPY
    status: TransferStatus = TransferStatus.PENDING
    error: Optional[str] = None
    transferred_bytes: int = 0

    def __post_init__(self):
        if self.size_bytes < 0:
            raise ValueError(f"size_bytes must be non-negative: {self.container}/{self.key}")

    @property
    def location(self) -> str:
        return f"{self.container}/{self.key}"

    def with_action(self, action: Action) -> "ObjectRecord":
        """アクションを決定した新しいレコードを返す（元のレコードは変更しない）"""
        return replace(
            self,
            action=action,
            status=TransferStatus.PENDING,
            error=None,
            transferred_bytes=0,
        )

    def transition(self, status: TransferStatus, error: Optional[str] = None) -> None:
        """ステータスを遷移させる

        Raises:
            InvalidTransitionError: 許可されていない遷移の場合
        """
        allowed = _ALLOWED_TRANSITIONS.get(self.status, frozenset())
        if status not in allowed:
            raise InvalidTransitionError(
                f"Invalid status transition for {self.location}: "
                f"{self.status.value} -> {status.value}"
            )
        if status is TransferStatus.FAILED and not error:
            raise InvalidTransitionError(f"A failed transfer needs an error message: {self.location}")

        self.status = status
        self.error = error if status is TransferStatus.FAILED else None
        if status is TransferStatus.COMPLETED:
            self.transferred_bytes = self.size_bytes

    def advance(self, nbytes: int) -> None:
        """転送済みバイト数を進める（size_bytes を超えず、減少しない）"""
        if nbytes <= 0:
            return
        self.transferred_bytes = min(self.size_bytes, self.transferred_bytes + nbytes)


@dataclass(frozen=True)
class TransferPlan:
    """転送計画（構築後は変更せず、再スキャン時は丸ごと置き換える）"""
    records: Tuple[ObjectRecord, ...]
    total_files: int
    total_bytes: int
    conflict_count: int
    estimated_duration_seconds: float
    warnings: Tuple[str, ...] = ()

    def action_counts(self) -> Dict[Action, int]:
        counts = {action: 0 for action in Action}
        for record in self.records:
            counts[record.action] += 1
        return counts

    @property
    def bytes_to_transfer(self) -> int:
        """スキップ以外のレコードのバイト数合計"""
        return sum(r.size_bytes for r in self.records if r.action is not Action.SKIP)


@dataclass(frozen=True)
class TransferProgress:
    """転送進捗のスナップショット

    更新のたびに Progress Tracker で再計算した新しいインスタンスに置き換える。
    transferred_bytes は完了したオブジェクトのサイズのみを合計する。
    """
    total_files: int
    total_bytes: int
    start_time: datetime
    completed_files: int = 0
    failed_files: int = 0
    skipped_files: int = 0
    transferred_bytes: int = 0
    throughput_bytes_per_sec: float = 0.0
    estimated_seconds_remaining: float = 0.0
    current_keys: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def processed_files(self) -> int:
        return self.completed_files + self.failed_files + self.skipped_files

    @property
    def is_finished(self) -> bool:
        return self.processed_files >= self.total_files

    @property
    def success_rate(self) -> float:
        attempted = self.completed_files + self.failed_files
        return (self.completed_files / attempted) * 100 if attempted > 0 else 0.0


@dataclass(frozen=True)
class TransferUpdate:
    """終端状態に達したレコードと、その直後の進捗スナップショット"""
    record: ObjectRecord
    progress: TransferProgress
