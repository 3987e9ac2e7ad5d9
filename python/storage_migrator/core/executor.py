"""転送計画の実行"""
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, Iterator, Optional

from ..exceptions import StorageClientError, TransferError
from ..models.transfer import (
    Action,
    ObjectRecord,
    TransferPlan,
    TransferProgress,
    TransferStatus,
    TransferUpdate,
)
from ..utils.formatting import format_bytes
from ..utils.logger import SUCCESS, LoggerManager
from ..utils.progress import ObjectProgressCallback, recompute, start_progress
from .storage_client import StorageClient


class TransferExecutor:
    """固定数のワーカーで計画内のオブジェクトを転送する

    オブジェクトは計画順に投入し、空きワーカーができた時点で次を投入する。
    レコードのステータスと進捗を更新するのは run() を反復しているスレッドだけで、
    ワーカーは I/O と自分のレコードの転送済みバイト数の更新のみを行う。
    """

    def __init__(
        self,
        source: StorageClient,
        destination: StorageClient,
        dry_run_delay: float = 0.1,
        verify_integrity: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.source = source
        self.destination = destination
        self.dry_run_delay = dry_run_delay
        self.verify_integrity = verify_integrity
        self.logger = LoggerManager.get_logger()
        self._sleep = sleep
        self._cancel_event = threading.Event()
        self._running = False
        self._progress: Optional[TransferProgress] = None
        self._in_flight: Dict[Future, ObjectRecord] = {}

    @property
    def progress(self) -> Optional[TransferProgress]:
        """最新の進捗スナップショット"""
        return self._progress

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """協調的キャンセル（転送中のオブジェクトは最後まで処理する）"""
        if not self._cancel_event.is_set():
            self.logger.warning("Cancellation requested; in-flight transfers will finish first")
        self._cancel_event.set()

    def run(self, plan: TransferPlan, concurrency: int = 4, dry_run: bool = False) -> Iterator[TransferUpdate]:
        """計画を実行し、オブジェクトが終端状態になるたびに TransferUpdate を返す

        Raises:
            TransferError: 実行全体が継続できなくなった場合
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1: {concurrency}")
        if self._running:
            raise TransferError("This executor is already running a plan")
        if any(record.status is not TransferStatus.PENDING for record in plan.records):
            raise TransferError("The plan has already been executed; rescan to build a fresh plan")

        self._running = True
        try:
            yield from self._run(plan, concurrency, dry_run)
        except TransferError:
            raise
        except Exception as e:
            self.logger.error(f"Transfer failed: {e}")
            raise TransferError(f"Transfer failed: {e}") from e
        finally:
            self._in_flight.clear()
            self._running = False

    def _run(self, plan: TransferPlan, concurrency: int, dry_run: bool) -> Iterator[TransferUpdate]:
        self._progress = start_progress(plan.total_files, plan.bytes_to_transfer)
        mode = "dry run" if dry_run else "transfer"
        self.logger.info(f"Starting {mode} of {plan.total_files} objects with {concurrency} workers")

        records = iter(plan.records)
        exhausted = False

        with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="transfer") as pool:
            while True:
                # 空きがある間だけ投入（キャンセル確認は投入のたびに行う）
                while not exhausted and len(self._in_flight) < concurrency and not self.cancelled:
                    record = next(records, None)
                    if record is None:
                        exhausted = True
                        break

                    if record.action is Action.SKIP:
                        yield self._skip(record)
                        continue

                    record.transition(TransferStatus.IN_PROGRESS)
                    future = pool.submit(self._transfer, record, dry_run)
                    self._in_flight[future] = record

                if not self._in_flight:
                    break

                done, _ = wait(list(self._in_flight), return_when=FIRST_COMPLETED)
                for future in done:
                    record = self._in_flight.pop(future)
                    yield self._finish(record, future, dry_run)

        if self.cancelled and not exhausted:
            remaining = sum(1 for r in plan.records if r.status is TransferStatus.PENDING)
            self.logger.warning(f"Transfer cancelled; {remaining} objects were not started")

    def _transfer(self, record: ObjectRecord, dry_run: bool) -> None:
        """ワーカースレッドで1オブジェクトを転送"""
        if dry_run:
            self._sleep(self.dry_run_delay)
            return

        callback = ObjectProgressCallback(record)
        data = self.source.get_object(record.container, record.key)
        self.destination.put_object(
            record.container,
            record.key,
            data,
            content_type=record.content_type,
            overwrite=record.action is Action.OVERWRITE,
            callback=callback,
        )

        if self.verify_integrity:
            self._verify(record, len(data))

    def _verify(self, record: ObjectRecord, expected_size: int) -> None:
        """転送先のサイズを確認"""
        info = self.destination.head_object(record.container, record.key)
        if info is None:
            raise StorageClientError(
                f"Integrity check failed: {record.location} not found at destination",
                container=record.container, key=record.key,
            )
        if info.size_bytes != expected_size:
            raise StorageClientError(
                f"Integrity check failed: {record.location} size {info.size_bytes} != {expected_size}",
                container=record.container, key=record.key,
            )

    def _skip(self, record: ObjectRecord) -> TransferUpdate:
        record.transition(TransferStatus.SKIPPED)
        self.logger.info(f"Skipped existing object: {record.location}", extra={"object_key": record.key})
        return self._publish(record, skipped_files=self._progress.skipped_files + 1)

    def _finish(self, record: ObjectRecord, future: Future, dry_run: bool) -> TransferUpdate:
        try:
            future.result()
        except Exception as e:
            message = str(e) or e.__class__.__name__
            record.transition(TransferStatus.FAILED, message)
            self.logger.error(
                f"Failed to transfer {record.location}: {message}", extra={"object_key": record.key}
            )
            return self._publish(record, failed_files=self._progress.failed_files + 1)

        record.transition(TransferStatus.COMPLETED)
        if dry_run:
            self.logger.info(f"[DRY RUN] Would transfer: {record.location}", extra={"object_key": record.key})
        else:
            self.logger.log(
                SUCCESS,
                f"Transferred: {record.location} ({format_bytes(record.size_bytes)})",
                extra={"object_key": record.key},
            )
        return self._publish(
            record,
            completed_files=self._progress.completed_files + 1,
            transferred_bytes=self._progress.transferred_bytes + record.size_bytes,
        )

    def _publish(self, record: ObjectRecord, **changes) -> TransferUpdate:
        """進捗を再計算してスナップショットを置き換える"""
        self._progress = recompute(
            self._progress,
            current_keys=tuple(r.key for r in self._in_flight.values()),
            **changes,
        )
        return TransferUpdate(record=record, progress=self._progress)
