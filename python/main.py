#!/usr/bin/env python3
"""Storage Migrator - エントリーポイント"""
import argparse
import signal
import sys

from storage_migrator import StorageMigrator
from storage_migrator.utils.report import build_report, write_logs, write_report

EXIT_INTERRUPTED = 130


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Copy objects between Supabase Storage and R2")
    parser.add_argument("config", nargs="?", default="config.json", help="path to the JSON configuration")
    parser.add_argument("--report", help="write a JSON report of the run to this path")
    parser.add_argument("--logs", help="write the run log as text to this path")
    return parser.parse_args(argv)


def install_interrupt_handler(session):
    """Ctrl+C の処理を設定

    転送中の1回目は転送中のオブジェクトを完了させてから止める。
    転送中でない場合と2回目以降は通常どおり KeyboardInterrupt を送出する。
    """
    def handle_interrupt(signum, frame):
        if not session.is_running:
            raise KeyboardInterrupt
        signal.signal(signal.SIGINT, signal.default_int_handler)
        session.cancel()

    signal.signal(signal.SIGINT, handle_interrupt)


def main(argv=None):
    """メイン関数"""
    args = parse_args(argv)
    try:
        migrator = StorageMigrator(args.config)
        install_interrupt_handler(migrator.session)

        successful, failed = migrator.run()

        session = migrator.session
        if args.report:
            write_report(args.report, build_report(session.options, session.plan, session.progress, session.logs))
        if args.logs:
            write_logs(args.logs, session.logs)

        # 中断された実行や未処理のオブジェクトが残る実行は失敗扱い
        unfinished = session.interrupted or session.progress is None or not session.progress.is_finished
        exit_code = 0 if failed == 0 and not unfinished else 1
        sys.exit(exit_code)

    except KeyboardInterrupt:
        print("Interrupted")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
