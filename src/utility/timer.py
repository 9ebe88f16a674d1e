"""처리 단계별 소요 시간 측정."""

import time
from contextlib import contextmanager

from loguru import logger


@contextmanager
def timer(label: str = ""):
    """블록 실행 시간을 ms 단위로 측정한다.

    사용법:
        with timer(f"process {image_id}") as t:
            ...
        t.elapsed_ms
    """
    t = _Elapsed()
    start = time.perf_counter()
    try:
        yield t
    finally:
        t.elapsed_ms = (time.perf_counter() - start) * 1000
        if label:
            logger.debug(f"[{label}] {t.elapsed_ms:.1f}ms")


class _Elapsed:
    elapsed_ms: float = 0.0
