import sys

from loguru import logger


def setup_logger(level: str = "INFO", process: str = "api"):
    """Loguru 기본 설정. api / worker 프로세스 시작 시 한 번 호출."""
    logger.remove()
    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            f"<magenta>{process}</magenta> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        level=level.upper(),
        backtrace=False,
    )
    return logger
