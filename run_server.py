# run_server.py
import faulthandler
import logging
import os
import sys
from pathlib import Path

# crash log sits next to the exe (frozen) or the project root (dev)
BASE_DIR = Path(sys.executable).resolve().parent if getattr(sys, "frozen", False) else Path(__file__).resolve().parent
LOG_FILE = BASE_DIR / "ledger_crash.log"

logger = logging.getLogger("nft_lending.server")


def main() -> int:
    crash_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
    crash_handler.setLevel(logging.INFO)
    crash_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(crash_handler)
    logger.setLevel(logging.INFO)

    # fatal interpreter crashes bypass logging entirely
    faulthandler.enable(crash_handler.stream)

    logger.info("--- START --- exe=%s cwd=%s base_dir=%s", sys.executable, os.getcwd(), BASE_DIR)

    try:
        import uvicorn

        # config and app are imported only after the crash log is in place
        from app.core.config import API_HOST, API_PORT, LOG_LEVEL
        from main import app

        logger.info("listening on %s:%s", API_HOST, API_PORT)
        uvicorn.run(app, host=API_HOST, port=API_PORT, reload=False, log_level=LOG_LEVEL.lower())
    except Exception:
        logger.exception("server failed to start")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
