#!/usr/bin/env python3
"""進捗計算とフォーマットのテスト"""
from datetime import datetime, timedelta, timezone

from storage_migrator.utils.formatting import format_bytes, format_duration
from storage_migrator.utils.progress import (
    ObjectProgressCallback,
    calculate_throughput,
    estimate_time_remaining,
    recompute,
    start_progress,
)

from conftest import make_record

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_throughput():
    assert calculate_throughput(100, 4) == 25
    assert calculate_throughput(100, 0) == 0
    assert calculate_throughput(100, -1) == 0


def test_time_remaining():
    assert estimate_time_remaining(100, 40, 20) == 3
    assert estimate_time_remaining(100, 40, 0) == 0
    assert estimate_time_remaining(100, 120, 10) == 0


def test_recompute_from_counters():
    progress = start_progress(total_files=3, total_bytes=60, now=START)
    updated = recompute(progress, now=START + timedelta(seconds=2), completed_files=1, transferred_bytes=20)

    assert updated.completed_files == 1
    assert updated.throughput_bytes_per_sec == 10
    assert updated.estimated_seconds_remaining == 4
    # 元のスナップショットは変わらない
    assert progress.completed_files == 0
    assert progress.throughput_bytes_per_sec == 0


def test_recompute_at_start_time():
    progress = start_progress(total_files=1, total_bytes=10, now=START)
    updated = recompute(progress, now=START, transferred_bytes=10)
    assert updated.throughput_bytes_per_sec == 0
    assert updated.estimated_seconds_remaining == 0


def test_progress_properties():
    progress = start_progress(total_files=4, total_bytes=10, now=START)
    progress = recompute(progress, now=START, completed_files=3, failed_files=1)
    assert progress.processed_files == 4
    assert progress.is_finished
    assert progress.success_rate == 75


def test_object_callback():
    record = make_record("a.txt", 10)
    callback = ObjectProgressCallback(record)
    callback(6)
    callback(6)
    assert record.transferred_bytes == 10


def test_format_bytes():
    assert format_bytes(0) == "0 Bytes"
    assert format_bytes(512) == "512 Bytes"
    assert format_bytes(1536) == "1.5 KB"
    assert format_bytes(5 * 1024 * 1024) == "5 MB"
    assert format_bytes(2 * 1024 ** 3) == "2 GB"


def test_format_duration():
    assert format_duration(45) == "45s"
    assert format_duration(125) == "2m 5s"
    assert format_duration(119.6) == "2m 0s"
    assert format_duration(3780) == "1h 3m"
