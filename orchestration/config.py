"""
Configuration — environment-driven settings for the console game.

Values come from the process environment, with a `.env` file loaded first
if present.
"""

import os
import logging
from dotenv import load_dotenv

load_dotenv()

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
MODEL_ID = os.getenv("MODEL_ID", "gemini-2.0-flash")
ADVENTURE_PATH = os.getenv("ADVENTURE_PATH", "adventures/sample_adventure.json")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR", "logs")
RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
RETRY_INITIAL_DELAY = float(os.getenv("RETRY_INITIAL_DELAY", "1.0"))
GEMINI_RPM = int(os.getenv("GEMINI_RPM", "15"))


def configure_logging(level: str = LOG_LEVEL, log_dir: str = LOG_DIR) -> None:
    """Console + file logging in the shared format."""
    if not os.path.exists(log_dir):
        os.makedirs(log_dir)

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(os.path.join(log_dir, "game.log"), encoding="utf-8"),
            logging.StreamHandler(),
        ],
    )
