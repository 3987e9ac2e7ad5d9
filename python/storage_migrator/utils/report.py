"""転送結果のレポート出力"""
import json
import os
from dataclasses import asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from ..models.config import TransferOptions
from ..models.transfer import TransferPlan, TransferProgress
from .logger import LogEntry


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def build_report(
    options: TransferOptions,
    plan: Optional[TransferPlan],
    progress: Optional[TransferProgress],
    logs: Iterable[LogEntry],
) -> Dict[str, Any]:
    """レポート用の辞書を作成（認証情報は含めない）"""
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "transfer_options": asdict(options),
        "plan": asdict(plan) if plan else None,
        "progress": asdict(progress) if progress else None,
        "logs": [asdict(entry) for entry in logs],
    }


def _ensure_dir(path: str) -> None:
    directory = os.path.dirname(path)
    if directory and not os.path.exists(directory):
        os.makedirs(directory)


def write_report(path: str, report: Dict[str, Any]) -> None:
    """レポートを JSON で書き出す"""
    _ensure_dir(path)
    with open(path, "w", encoding="utf-8") as file:
        json.dump(report, file, indent=2, ensure_ascii=False, default=_json_default)


def write_logs(path: str, logs: Iterable[LogEntry]) -> None:
    """構造化ログを1行ずつテキストで書き出す"""
    _ensure_dir(path)
    with open(path, "w", encoding="utf-8") as file:
        for entry in logs:
            file.write(entry.format_line() + "\n")
