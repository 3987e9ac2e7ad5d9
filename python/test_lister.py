#!/usr/bin/env python3
"""オブジェクト一覧取得のテスト"""
from storage_migrator.core.lister import ObjectLister
from storage_migrator.models.transfer import Action, Backend, ObjectInfo, TransferStatus


def _lister(source):
    return ObjectLister(source, Backend.R2)


def test_empty_container(source):
    """オブジェクトのないコンテナは空のリスト（エラーではない）"""
    assert _lister(source).list("media") == []


def test_fallback_when_fast_path_unavailable(source):
    """高速経路が使えない場合、コンテナごとに一覧 API を1回だけ呼ぶ"""
    for i in range(3):
        source.add("media", f"img/{i}.png", b"x" * (i + 1))
    source.add("docs", "a.pdf", b"pdf")

    result = _lister(source).list_all(["media", "docs"])

    assert result.fast_path_available is False
    assert source.count("list_objects_fast") == 0
    assert [c for c in source.calls if c[0] == "list_objects"] == [
        ("list_objects", "media", ""),
        ("list_objects", "docs", ""),
    ]
    assert sorted(r.key for r in result.records) == ["a.pdf", "img/0.png", "img/1.png", "img/2.png"]


def test_probe_is_cached(source):
    lister = _lister(source)
    lister.list("media")
    lister.list("docs")
    assert source.count("probe_fast_listing") == 1


def test_fast_path_used_when_available(source):
    source.fast_available = True
    source.add("media", "a.png", b"aaa", content_type="image/png")

    records = _lister(source).list("media")

    assert source.count("list_objects") == 0
    assert len(records) == 1
    record = records[0]
    assert record.container == "media"
    assert record.size_bytes == 3
    assert record.content_type == "image/png"
    assert record.source_backend is Backend.SUPABASE
    assert record.destination_backend is Backend.R2
    assert record.action is Action.COPY
    assert record.status is TransferStatus.PENDING


def test_fast_path_error_falls_back(source):
    source.fast_available = True
    source.fail_fast = True
    source.add("media", "a.png", b"a")

    records = _lister(source).list("media")

    assert [r.key for r in records] == ["a.png"]
    assert source.count("list_objects") == 1


def test_fast_path_without_rows_is_confirmed(source):
    source.fast_available = True
    source.fast_rows = {"media": []}
    source.add("media", "a.png", b"a")

    records = _lister(source).list("media")

    assert [r.key for r in records] == ["a.png"]


def test_prefix_filter(source):
    source.add("media", "2023/a.png", b"a")
    source.add("media", "2024/b.png", b"b")

    records = _lister(source).list("media", "2024/")

    assert [r.key for r in records] == ["2024/b.png"]


def test_objects_without_key_are_dropped(source):
    source.add("media", "a.png", b"a")
    source.extra_infos["media"] = [ObjectInfo(key="", size_bytes=3)]

    records = _lister(source).list("media")

    assert [r.key for r in records] == ["a.png"]


def test_failed_container_does_not_abort_scan(source):
    source.add("media", "a.png", b"a")
    source.add("docs", "b.pdf", b"b")
    source.fail_list.add("media")

    result = _lister(source).list_all(["media", "docs"])

    assert result.failed_containers == ["media"]
    assert [r.key for r in result.records] == ["b.pdf"]
    assert len(result.warnings) == 1
    assert "media" in result.warnings[0]


def test_listing_does_not_write(source):
    source.add("media", "a.png", b"a")
    _lister(source).list_all(["media"])
    assert source.count("put_object") == 0
