import time
import functools
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def elapsed_ms(t0: float) -> int:
    """Milliseconds since a time.perf_counter() reading."""
    return int((time.perf_counter() - t0) * 1000)


def profile_stage(stage_name: str, slow_after_ms: Optional[int] = None):
    """
    Log how long an async pipeline stage takes.

    Stages slower than slow_after_ms are logged at WARNING so they stand out
    next to the per-request [PERF] lines.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            t0 = time.perf_counter()
            outcome = "ok"
            try:
                return await func(*args, **kwargs)
            except BaseException:
                outcome = "failed"
                raise
            finally:
                ms = elapsed_ms(t0)
                level = logging.WARNING if slow_after_ms is not None and ms > slow_after_ms else logging.INFO
                logger.log(level, f"[PERF] {stage_name}: {ms} ms ({outcome})")
        return wrapper
    return decorator
