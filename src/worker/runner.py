"""워커 프로세스 실행.

SIGINT/SIGTERM 을 받으면 컨슈머 루프에 중단을 알리고, 처리 중인 메시지가
끝나길 WORKER_SHUTDOWN_GRACE_SECONDS 만큼 기다린 뒤 자원을 닫는다.
"""

import signal
import threading

from loguru import logger

from core.config import Settings
from core.wiring import build_consumer, build_services
from utility.logger import setup_logger


def run_worker(settings: Settings) -> None:
    setup_logger(settings.LOG_LEVEL, process="worker")
    logger.info(f"{settings.APP_NAME} worker v{settings.APP_VERSION} starting")

    services = build_services(settings)
    consumer = build_consumer(settings, services)

    stop_event = threading.Event()

    def _on_signal(signum, _frame):
        logger.info(f"received {signal.Signals(signum).name}, stopping after current task")
        stop_event.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    thread = threading.Thread(target=consumer.run, args=(stop_event,), name="task-consumer", daemon=True)
    thread.start()

    # 컨슈머 스레드가 예외로 죽어도 빠져나오도록 주기적으로 확인한다
    while thread.is_alive() and not stop_event.wait(0.5):
        pass
    stop_event.set()

    thread.join(timeout=settings.WORKER_SHUTDOWN_GRACE_SECONDS)
    if thread.is_alive():
        logger.warning(f"consumer did not stop within {settings.WORKER_SHUTDOWN_GRACE_SECONDS}s, forcing shutdown")

    services.close()
    logger.info("worker shutdown complete")
