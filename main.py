import logging

from arenabot.config import load_settings
from arenabot.worker import run_forever


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def main() -> int:
    _setup_logging()
    settings = load_settings()

    logging.getLogger(__name__).info(
        "arenabot started: weekdays=%s interval=%sms debug=%s",
        ",".join(str(d) for d in settings.target_weekdays),
        settings.check_interval_ms,
        settings.debug,
    )

    try:
        run_forever(settings)
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("arenabot stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
