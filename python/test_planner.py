#!/usr/bin/env python3
"""転送計画作成のテスト"""
from datetime import timedelta

import pytest

from storage_migrator.core.planner import ASSUMED_THROUGHPUT, PlanBuilder
from storage_migrator.models.transfer import Action, ConflictPolicy

from conftest import BASE_TIME, make_record

LIMIT = 1000


def _build(destination, candidates, policy=ConflictPolicy.SKIP, limit=LIMIT):
    return PlanBuilder(destination).build_plan(candidates, limit, policy)


def test_oversized_objects_are_excluded(destination):
    candidates = [make_record("small.bin", 10), make_record("exact.bin", LIMIT), make_record("big.bin", LIMIT + 1)]

    plan = _build(destination, candidates)

    assert [r.key for r in plan.records] == ["small.bin", "exact.bin"]
    assert plan.total_files == 2
    assert plan.total_bytes == 10 + LIMIT


@pytest.mark.parametrize("policy", list(ConflictPolicy))
def test_absent_destination_is_copy(destination, policy):
    plan = _build(destination, [make_record("a.txt", 5)], policy)
    assert plan.records[0].action is Action.COPY
    assert plan.conflict_count == 0


def test_skip_policy(destination):
    destination.add("media", "a.txt", b"old")
    plan = _build(destination, [make_record("a.txt", 5), make_record("b.txt", 5)], ConflictPolicy.SKIP)

    assert [r.action for r in plan.records] == [Action.SKIP, Action.COPY]
    assert plan.conflict_count == 1
    # スキップも合計サイズに含める
    assert plan.total_bytes == 10


def test_always_overwrite_ignores_timestamps(destination):
    destination.add("media", "a.txt", b"new", last_modified=BASE_TIME + timedelta(days=30))
    plan = _build(destination, [make_record("a.txt", 5)], ConflictPolicy.ALWAYS_OVERWRITE)
    assert plan.records[0].action is Action.OVERWRITE


def test_overwrite_newer(destination):
    destination.add("media", "older.txt", b"d", last_modified=BASE_TIME - timedelta(days=1))
    destination.add("media", "newer.txt", b"d", last_modified=BASE_TIME + timedelta(days=1))
    destination.add("media", "same.txt", b"d", last_modified=BASE_TIME)
    destination.add("media", "unknown.txt", b"d", last_modified=None)
    candidates = [make_record(k, 5) for k in ("older.txt", "newer.txt", "same.txt", "unknown.txt")]

    plan = _build(destination, candidates, ConflictPolicy.OVERWRITE_NEWER)

    assert [r.action for r in plan.records] == [
        Action.OVERWRITE, Action.SKIP, Action.SKIP, Action.OVERWRITE,
    ]
    assert plan.conflict_count == 4


def test_probe_failure_defaults_to_copy(destination):
    """存在確認が失敗したオブジェクトはコピー扱いで計画に残る"""
    destination.add("media", "a.txt", b"d")
    destination.fail_head.add("a.txt")

    plan = _build(destination, [make_record("a.txt", 5), make_record("b.txt", 5)])

    assert [r.action for r in plan.records] == [Action.COPY, Action.COPY]


def test_planning_is_idempotent(destination):
    destination.add("media", "a.txt", b"d")
    candidates = [make_record("a.txt", 5), make_record("b.txt", 7)]

    first = _build(destination, candidates)
    second = _build(destination, candidates)

    assert first == second
    # 候補レコードは変更されない
    assert [c.action for c in candidates] == [Action.COPY, Action.COPY]


def test_estimate_and_warnings(destination):
    size = ASSUMED_THROUGHPUT * 3
    plan = PlanBuilder(destination).build_plan(
        [make_record("a.bin", size)], size, ConflictPolicy.SKIP, warnings=["docs failed"],
    )
    assert plan.estimated_duration_seconds == pytest.approx(3)
    assert plan.warnings == ("docs failed",)
    assert plan.action_counts()[Action.COPY] == 1
