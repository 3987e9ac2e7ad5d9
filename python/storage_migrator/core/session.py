"""スキャンから転送までの実行管理"""
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from ..exceptions import TransferError
from ..models.config import Config
from ..models.transfer import ObjectRecord, TransferPlan, TransferProgress, TransferStatus, TransferUpdate
from ..utils.formatting import format_bytes, format_duration
from ..utils.logger import SUCCESS, LogEntry, LoggerManager
from .executor import TransferExecutor
from .factory import create_client
from .lister import ObjectLister
from .planner import PlanBuilder
from .storage_client import StorageClient


class MigrationSession:
    """1回の移行作業（スキャン・計画・転送）を管理

    計画と進捗はこのクラスが所有し、再スキャンや再実行のたびに丸ごと置き換える。
    """

    def __init__(
        self,
        config: Config,
        source: Optional[StorageClient] = None,
        destination: Optional[StorageClient] = None,
        log_listener: Optional[Callable[[LogEntry], None]] = None,
    ):
        self.config = config
        self.options = config.options
        self.logger = LoggerManager.get_logger()

        # クライアントを初期化
        direction = self.options.direction
        self.source = source or create_client(direction.source, config)
        self.destination = destination or create_client(direction.destination, config)

        self.plan: Optional[TransferPlan] = None
        self.progress: Optional[TransferProgress] = None
        self.paused = False
        self.interrupted = False  # 直近の実行がキャンセル・一時停止で終わったか
        self._executor: Optional[TransferExecutor] = None
        self._log_handler = LoggerManager.attach_entry_handler(log_listener)

    def __enter__(self) -> "MigrationSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """構造化ログの収集を止める"""
        LoggerManager.detach_entry_handler(self._log_handler)

    @property
    def logs(self) -> List[LogEntry]:
        return self._log_handler.snapshot()

    @property
    def is_running(self) -> bool:
        return self._executor is not None

    def test_connections(self) -> Dict[str, Tuple[bool, Optional[str]]]:
        """転送元・転送先の接続確認"""
        results = {}
        for role, client in (("source", self.source), ("destination", self.destination)):
            ok, error = client.test_connection()
            if ok:
                self.logger.log(SUCCESS, f"Connected to {client.backend.value} ({role})")
            else:
                self.logger.error(f"Connection to {client.backend.value} ({role}) failed: {error}")
            results[role] = (ok, error)
        return results

    def list_containers(self) -> List[str]:
        return self.source.list_containers()

    def scan(self) -> TransferPlan:
        """選択されたコンテナをスキャンして転送計画を作り直す"""
        self.logger.info("Starting object scan...")
        try:
            lister = ObjectLister(self.source, self.options.direction.destination)
            scan = lister.list_all(self.options.selected_containers, self.options.prefix_filter)

            planner = PlanBuilder(self.destination)
            plan = planner.build_plan(
                scan.records,
                self.options.max_file_size,
                self.options.conflict_policy,
                warnings=scan.warnings,
            )
        except Exception as e:
            self.logger.error(f"Scan failed: {e}")
            raise

        self.plan = plan
        self.progress = None

        counts = plan.action_counts()
        self.logger.log(
            SUCCESS,
            f"Scan complete: {plan.total_files} files, {format_bytes(plan.total_bytes)} total",
        )
        self.logger.info(
            "Plan: " + ", ".join(f"{count} to {action.value}" for action, count in counts.items())
            + f" (estimated {format_duration(plan.estimated_duration_seconds)})"
        )
        return plan

    def run(self, on_update: Optional[Callable[[TransferUpdate], None]] = None) -> TransferProgress:
        """現在の計画を実行

        Raises:
            TransferError: 計画がない場合、または実行が致命的エラーで終了した場合
        """
        if self.plan is None:
            raise TransferError("No transfer plan available; run scan() first")
        if self._executor is not None:
            raise TransferError("A transfer is already running")

        executor = TransferExecutor(
            self.source,
            self.destination,
            dry_run_delay=self.options.dry_run_delay,
            verify_integrity=self.options.verify_integrity,
        )
        self._executor = executor
        self.paused = False
        self.interrupted = False
        started = datetime.now(timezone.utc)

        updates = executor.run(self.plan, self.options.concurrency, self.options.dry_run)
        try:
            for update in updates:
                self.progress = update.progress
                if on_update:
                    on_update(update)
        finally:
            updates.close()
            self._executor = None
            # 致命的エラーでも最後の正常なスナップショットを残す
            if executor.progress is not None:
                self.progress = executor.progress

        self.interrupted = executor.cancelled
        elapsed = (datetime.now(timezone.utc) - started).total_seconds()
        if executor.cancelled:
            self.logger.warning("Transfer paused" if self.paused else "Transfer cancelled")
        else:
            self.logger.log(SUCCESS, f"Transfer completed in {format_duration(elapsed)}")

        progress = self.progress
        self.logger.info(
            f"Results: {progress.completed_files} completed, "
            f"{progress.failed_files} failed, {progress.skipped_files} skipped"
        )
        return progress

    def pause(self) -> None:
        """一時停止（実行中の転送を完了させてから止める）"""
        if self._executor is None:
            return
        self.paused = True
        self._executor.cancel()

    def cancel(self) -> None:
        if self._executor is None:
            return
        self.paused = False
        self._executor.cancel()

    def resume(self, on_update: Optional[Callable[[TransferUpdate], None]] = None) -> TransferProgress:
        """再スキャンして最初から実行し直す

        完了済みのオブジェクトは、転送先に存在することから競合方針に従って判定される。
        """
        self.logger.info("Transfer resumed")
        self.paused = False
        self.scan()
        return self.run(on_update)

    def failed_records(self) -> List[ObjectRecord]:
        """失敗したレコード（手動での再実行用）"""
        if self.plan is None:
            return []
        return [r for r in self.plan.records if r.status is TransferStatus.FAILED]
