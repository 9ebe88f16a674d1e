"""고정 횟수 + 지수 백오프 재시도 유틸리티."""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass(frozen=True)
class RetryStrategy:
    attempts: int = 3
    delay: float = 2.0  # 첫 재시도 전 대기(초)
    backoff: float = 2.0  # 대기 시간 배수


def call_with_retry(
    func: Callable[[], T],
    strategy: RetryStrategy,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    label: str = "",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """func를 최대 strategy.attempts 번 호출한다.

    retry_on 에 해당하는 예외만 재시도하고, 마지막 시도의 예외는 그대로 올린다.
    """
    attempts = max(strategy.attempts, 1)
    delay = strategy.delay

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except retry_on as e:
            if attempt == attempts:
                logger.error(f"[{label}] giving up after {attempts} attempts: {e}")
                raise
            logger.warning(f"[{label}] attempt {attempt}/{attempts} failed: {e} (retry in {delay:.1f}s)")
            sleep(delay)
            delay *= strategy.backoff

    raise AssertionError("unreachable")
