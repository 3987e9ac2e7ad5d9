"""Storage Migrator パッケージ"""
from typing import Tuple
from .models.config import Config
from .utils.logger import LoggerManager
from .core.session import MigrationSession


class StorageMigrator:
    """ストレージ移行のメインクラス"""

    def __init__(self, config_path: str = "config.json"):
        # 設定を読み込み
        self.config = Config.from_file(config_path)

        # ロガーをセットアップ
        self.logger = LoggerManager.setup(self.config.logging)
        self.logger.info("Storage migrator initialized")

        # セッションを作成
        self.session = MigrationSession(self.config)

    def run(self) -> Tuple[int, int]:
        """スキャンと転送を実行し、(成功数, 失敗数) を返す"""
        direction = self.config.options.direction.value
        mode = "dry run" if self.config.options.dry_run else "live transfer"
        self.logger.info(f"Starting storage migration ({direction}, {mode})...")

        self.session.scan()
        progress = self.session.run()
        return progress.completed_files, progress.failed_files


__all__ = ['StorageMigrator', 'Config', 'MigrationSession']
