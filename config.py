"""
Bot configuration.
Values come from the environment (or a .env file next to the bot) with
defaults suitable for a local run.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent

# ==============================
# Discord
# ==============================

TOKEN = os.getenv("DISCORD_BOT_TOKEN", "").strip()
COMMAND_PREFIX = os.getenv("COMMAND_PREFIX", "!teto ")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ==============================
# Card rendering
# ==============================

# Production card matches the 2000×2480 background art
CARD_WIDTH = int(os.getenv("CARD_WIDTH", "2000"))
CARD_HEIGHT = int(os.getenv("CARD_HEIGHT", "2480"))

ASSETS_DIR = Path(os.getenv("ASSETS_DIR", str(BASE_DIR / "assets" / "card")))

# ==============================
# Data sources
# ==============================

SCORES_FILE = Path(os.getenv("SCORES_FILE", str(BASE_DIR / "scores.json")))

# Avatar downloads: per-attempt timeout (seconds) and retries after the first try
AVATAR_TIMEOUT = float(os.getenv("AVATAR_TIMEOUT", "5"))
AVATAR_RETRIES = int(os.getenv("AVATAR_RETRIES", "2"))
