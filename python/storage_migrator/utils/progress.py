"""転送進捗の計算

スループットと残り時間は累積カウンターと経過時間から毎回再計算する。
差分で更新しないので、リトライや並列完了があっても値がずれない。
"""
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from ..models.transfer import ObjectRecord, TransferProgress


def calculate_throughput(transferred_bytes: int, elapsed_seconds: float) -> float:
    """バイト/秒のスループット（経過時間が0以下なら0）"""
    if elapsed_seconds <= 0:
        return 0.0
    return transferred_bytes / elapsed_seconds


def estimate_time_remaining(total_bytes: int, transferred_bytes: int, throughput: float) -> float:
    """残り時間（秒）の推定（スループットが0以下なら0）"""
    if throughput <= 0:
        return 0.0
    remaining = max(0, total_bytes - transferred_bytes)
    return remaining / throughput


def start_progress(total_files: int, total_bytes: int, now: Optional[datetime] = None) -> TransferProgress:
    """初期状態の進捗スナップショットを作成"""
    return TransferProgress(
        total_files=total_files,
        total_bytes=total_bytes,
        start_time=now or datetime.now(timezone.utc),
    )


def recompute(progress: TransferProgress, now: Optional[datetime] = None, **changes) -> TransferProgress:
    """カウンターを反映し、派生値を再計算した新しいスナップショットを返す"""
    updated = replace(progress, **changes)
    now = now or datetime.now(timezone.utc)
    elapsed = (now - updated.start_time).total_seconds()

    throughput = calculate_throughput(updated.transferred_bytes, elapsed)
    return replace(
        updated,
        throughput_bytes_per_sec=throughput,
        estimated_seconds_remaining=estimate_time_remaining(
            updated.total_bytes, updated.transferred_bytes, throughput
        ),
    )


class ObjectProgressCallback:
    """単一オブジェクトの転送進捗を追跡

    boto3 の Callback としても使える。呼び出しごとの転送バイト数を受け取る。
    """

    def __init__(self, record: ObjectRecord):
        self.record = record
        self.lock = threading.Lock()

    def __call__(self, bytes_transferred: int):
        with self.lock:
            self.record.advance(bytes_transferred)
