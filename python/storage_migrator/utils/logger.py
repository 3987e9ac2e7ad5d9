"""ロギング設定ユーティリティ"""
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..models.config import LoggingConfig

LOGGER_NAME = "storage_migrator"

# 転送成功などを表す独自レベル（INFO と WARNING の間）
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")


@dataclass(frozen=True)
class LogEntry:
    """UI 層などへ公開する構造化ログ"""
    timestamp: datetime
    level: str  # info / success / warning / error
    message: str
    key: Optional[str] = None

    def format_line(self) -> str:
        line = f"[{self.timestamp.isoformat()}] {self.level.upper()}: {self.message}"
        if self.key:
            line += f" - {self.key}"
        return line


def _entry_level(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warning"
    if levelno >= SUCCESS:
        return "success"
    return "info"


class LogEntryHandler(logging.Handler):
    """ログレコードを LogEntry に変換して蓄積するハンドラー"""

    def __init__(self, listener: Optional[Callable[[LogEntry], None]] = None, level: int = logging.INFO):
        super().__init__(level)
        self.entries: List[LogEntry] = []
        self.listener = listener
        self._entries_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = LogEntry(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
                level=_entry_level(record.levelno),
                message=record.getMessage(),
                key=getattr(record, "object_key", None),
            )
        except Exception:
            self.handleError(record)
            return

        with self._entries_lock:
            self.entries.append(entry)
        if self.listener:
            self.listener(entry)

    def snapshot(self) -> List[LogEntry]:
        with self._entries_lock:
            return list(self.entries)


class LoggerManager:
    """ロガーの設定と管理"""

    _logger: Optional[logging.Logger] = None

    @classmethod
    def setup(cls, config: LoggingConfig) -> logging.Logger:
        """ロガーをセットアップ"""
        if cls._logger is not None:
            return cls._logger

        # ログレベルの設定
        log_level = getattr(logging, config.level.upper(), logging.INFO)

        # ハンドラーの準備
        handlers: List[logging.Handler] = []

        # フォーマッターの作成
        formatter = logging.Formatter(
            config.format,
            datefmt="%Y-%m-%d %H:%M:%S"
        )

        # コンソールハンドラー
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler.setLevel(log_level)
        handlers.append(console_handler)

        # ファイルハンドラー（設定されている場合）
        if config.file:
            log_dir = os.path.dirname(config.file)
            if log_dir and not os.path.exists(log_dir):
                os.makedirs(log_dir)

            file_handler = logging.FileHandler(config.file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            file_handler.setLevel(log_level)
            handlers.append(file_handler)

        # ロガーの設定（構造化ログは INFO 以上を受け取る。出力レベルはハンドラー側で絞る）
        logger = logging.getLogger(LOGGER_NAME)
        logger.setLevel(min(log_level, logging.INFO))
        logger.handlers = handlers

        cls._logger = logger
        return logger

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """設定済みのロガーを取得"""
        if cls._logger is None:
            raise RuntimeError("Logger not initialized. Call setup() first.")
        return cls._logger

    @classmethod
    def attach_entry_handler(
        cls, listener: Optional[Callable[[LogEntry], None]] = None
    ) -> LogEntryHandler:
        """構造化ログを収集するハンドラーを追加"""
        handler = LogEntryHandler(listener)
        cls.get_logger().addHandler(handler)
        return handler

    @classmethod
    def detach_entry_handler(cls, handler: LogEntryHandler) -> None:
        cls.get_logger().removeHandler(handler)
