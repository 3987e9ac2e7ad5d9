"""転送計画の作成"""
from typing import Iterable, List, Sequence

from ..models.transfer import Action, ConflictPolicy, ObjectInfo, ObjectRecord, TransferPlan
from ..utils.formatting import format_bytes
from ..utils.logger import LoggerManager
from .storage_client import StorageClient

# 所要時間の見積もりに使う想定スループット（10MB/s、表示用の目安）
ASSUMED_THROUGHPUT = 10 * 1024 * 1024


class PlanBuilder:
    """候補オブジェクトにアクションを割り当てて TransferPlan を作る"""

    def __init__(self, destination: StorageClient, assumed_throughput: float = ASSUMED_THROUGHPUT):
        self.destination = destination
        self.assumed_throughput = assumed_throughput
        self.logger = LoggerManager.get_logger()

    def build_plan(
        self,
        candidates: Iterable[ObjectRecord],
        max_file_size_bytes: int,
        conflict_policy: ConflictPolicy,
        warnings: Sequence[str] = (),
    ) -> TransferPlan:
        """転送計画を作成

        Args:
            candidates: ObjectLister が返したレコード（変更しない）
            max_file_size_bytes: これを超えるオブジェクトは計画から除外
            conflict_policy: 転送先に同名オブジェクトがある場合の方針
            warnings: 一覧取得に失敗したコンテナなど、部分的な計画であることの警告

        Returns:
            新しい TransferPlan
        """
        conflict_policy = ConflictPolicy(conflict_policy)
        records: List[ObjectRecord] = []
        excluded = 0

        for candidate in candidates:
            if candidate.size_bytes > max_file_size_bytes:
                excluded += 1
                self.logger.debug(
                    f"Excluding {candidate.location}: {format_bytes(candidate.size_bytes)} "
                    f"exceeds the size limit"
                )
                continue
            records.append(candidate.with_action(self._decide_action(candidate, conflict_policy)))

        if excluded:
            self.logger.info(f"Excluded {excluded} objects larger than {format_bytes(max_file_size_bytes)}")
        for warning in warnings:
            self.logger.warning(f"Partial plan: {warning}")

        total_bytes = sum(r.size_bytes for r in records)
        return TransferPlan(
            records=tuple(records),
            total_files=len(records),
            total_bytes=total_bytes,
            conflict_count=sum(1 for r in records if r.action in (Action.SKIP, Action.OVERWRITE)),
            estimated_duration_seconds=total_bytes / self.assumed_throughput,
            warnings=tuple(warnings),
        )

    def _decide_action(self, candidate: ObjectRecord, policy: ConflictPolicy) -> Action:
        try:
            existing = self.destination.head_object(candidate.container, candidate.key)
        except Exception as e:
            # 存在確認できない場合は存在しないものとしてコピーする
            self.logger.warning(
                f"Could not check destination for {candidate.location}, assuming it does not exist: {e}",
                extra={"object_key": candidate.key},
            )
            return Action.COPY

        if existing is None:
            return Action.COPY

        if policy is ConflictPolicy.SKIP:
            return Action.SKIP
        if policy is ConflictPolicy.ALWAYS_OVERWRITE:
            return Action.OVERWRITE
        return self._compare_timestamps(candidate, existing)

    def _compare_timestamps(self, candidate: ObjectRecord, existing: ObjectInfo) -> Action:
        """overwrite-newer: 転送元が新しい場合のみ上書き"""
        source_time = candidate.last_modified
        destination_time = existing.last_modified
        if source_time is None or destination_time is None:
            # タイムスタンプが取れない場合は上書き扱い（近似）
            self.logger.debug(f"Missing timestamp for {candidate.location}, treating as overwrite")
            return Action.OVERWRITE

        try:
            newer = source_time > destination_time
        except TypeError:
            # naive と aware の比較はできないので上書き扱い
            return Action.OVERWRITE
        return Action.OVERWRITE if newer else Action.SKIP
