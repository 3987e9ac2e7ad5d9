#!/usr/bin/env python3
"""設定クラスのテスト"""
import json

import pytest

from storage_migrator.exceptions import ConfigValidationError
from storage_migrator.models.config import Config, R2Config, SupabaseConfig, TransferOptions
from storage_migrator.models.transfer import ConflictPolicy, Direction

from conftest import make_config


def _write(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_config_loading(tmp_path):
    """設定ファイルが読み込めるか確認"""
    path = _write(tmp_path, {
        "logging": {"level": "DEBUG"},
        "supabase": {"url": "https://example.supabase.co/", "service_key": "key"},
        "r2": {"account_id": "acc123", "access_key_id": "AKID", "secret_access_key": "secret"},
        "options": {
            "direction": "r2-to-supabase",
            "selected_containers": ["media", "avatars"],
            "conflict_policy": "overwrite-newer",
            "concurrency": 8,
        },
    })

    config = Config.from_file(path)

    assert config.logging.level == "DEBUG"
    assert config.supabase.url == "https://example.supabase.co"
    assert config.r2.endpoint == "https://acc123.r2.cloudflarestorage.com"
    assert config.options.direction is Direction.R2_TO_SUPABASE
    assert config.options.conflict_policy is ConflictPolicy.OVERWRITE_NEWER
    assert config.options.selected_containers == ["media", "avatars"]
    assert config.options.concurrency == 8


def test_option_defaults():
    options = make_config().options
    assert options.direction is Direction.SUPABASE_TO_R2
    assert options.conflict_policy is ConflictPolicy.SKIP
    assert options.concurrency == 4
    assert options.dry_run is True
    assert options.max_file_size == 2 * 1024 ** 3
    assert options.verify_integrity is True


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config.from_file(str(tmp_path / "missing.json"))


def test_invalid_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigValidationError):
        Config.from_file(str(path))


def test_unknown_key_is_rejected():
    with pytest.raises(ConfigValidationError):
        make_config(colour="blue")


@pytest.mark.parametrize("options", [
    {"direction": "sideways"},
    {"conflict_policy": "newest-wins"},
    {"concurrency": 0},
    {"concurrency": 11},
    {"max_file_size": 0},
    {"selected_containers": []},
    {"selected_containers": ["media", " "]},
])
def test_invalid_options(options):
    with pytest.raises(ConfigValidationError):
        make_config(**options)


def test_validation_error_is_value_error():
    with pytest.raises(ValueError):
        TransferOptions(selected_containers=[])


def test_supabase_validation():
    with pytest.raises(ConfigValidationError):
        SupabaseConfig(url="example.supabase.co", service_key="key")
    with pytest.raises(ConfigValidationError):
        SupabaseConfig(url="https://example.supabase.co", service_key="  ")


def test_r2_endpoint():
    config = R2Config(access_key_id="a", secret_access_key="b", endpoint="https://r2.example.com")
    assert config.endpoint == "https://r2.example.com"
    with pytest.raises(ConfigValidationError):
        R2Config(access_key_id="a", secret_access_key="b")
