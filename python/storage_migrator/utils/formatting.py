"""表示用のフォーマット関数"""

_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]


def format_bytes(size: int) -> str:
    """バイト数を読みやすい文字列に変換（1024基準）

    >>> format_bytes(0)
    '0 Bytes'
    >>> format_bytes(1536)
    '1.5 KB'
    """
    if size <= 0:
        return "0 Bytes"

    value = float(size)
    index = 0
    while value >= 1024 and index < len(_UNITS) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {_UNITS[index]}"


def format_duration(seconds: float) -> str:
    """秒数を "45s" / "2m 5s" / "1h 3m" 形式に変換"""
    total = max(0, int(round(seconds)))
    if total < 60:
        return f"{total}s"
    if total < 3600:
        minutes, secs = divmod(total, 60)
        return f"{minutes}m {secs}s"
    hours, rest = divmod(total, 3600)
    return f"{hours}h {rest // 60}m"
