"""指数バックオフ付きリトライ"""
import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

T = TypeVar("T")


def retry_with_backoff(
    func: Callable[[], T],
    max_retries: int = 3,
    base_delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    description: str = "operation",
    logger: Optional[logging.Logger] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """func を最大 max_retries 回まで試行する

    待ち時間は base_delay * 2 ** attempt。最後の試行で失敗した例外はそのまま送出する。
    retry_on に含まれない例外は即座に送出する。
    """
    if max_retries < 1:
        raise ValueError(f"max_retries must be at least 1: {max_retries}")

    logger = logger or logging.getLogger(__name__)

    attempt = 0
    while True:
        try:
            return func()
        except retry_on as e:
            attempt += 1
            if attempt >= max_retries:
                logger.error(f"{description} failed after {max_retries} attempts: {e}")
                raise
            wait_time = base_delay * (2 ** (attempt - 1))  # 指数バックオフ
            logger.warning(
                f"{description} failed (attempt {attempt}/{max_retries}), "
                f"retrying in {wait_time:g}s: {e}"
            )
            sleep(wait_time)
