from core.config import Settings
from worker.runner import run_worker


def main():
    run_worker(Settings())


if __name__ == "__main__":
    main()
