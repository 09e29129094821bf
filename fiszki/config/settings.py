"""Global settings and configuration."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root
_env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_env_path)


@dataclass
class Config:
    """Application-wide configuration."""

    # Supabase project (cloud sync backend)
    # Store in environment variables or .env: SUPABASE_URL, SUPABASE_ANON_KEY
    # NEVER hardcode secret keys in source code!
    SUPABASE_URL: str = os.environ.get("SUPABASE_URL", "")
    SUPABASE_ANON_KEY: str = os.environ.get("SUPABASE_ANON_KEY", "")
    SUPABASE_ACCESS_TOKEN: str = os.environ.get("SUPABASE_ACCESS_TOKEN", "")

    # Sync behaviour
    SYNC_MODE: str = "auto"  # Options: auto, manual, offline-only
    AUTO_SYNC_INTERVAL: int = 60  # seconds between background syncs
    CONNECTIVITY_CHECK_INTERVAL: int = 15
    TIMEOUT: int = 30

    # Category defaults
    DEFAULT_LANG1: str = "Language 1"
    DEFAULT_LANG2: str = "Language 2"

    # Cross-platform paths using pathlib
    # BASE_DIR is the project root (parent of fiszki/)
    BASE_DIR: Path = Path(__file__).parent.parent.parent.resolve()

    DATA_DIR: str = str(BASE_DIR / "data")
    DB_FILE: str = str(BASE_DIR / "data" / "fiszki.db")
    QUEUE_FILE: str = str(BASE_DIR / "data" / "sync_queue.json")
    ID_MAPPING_FILE: str = str(BASE_DIR / "data" / "id_mapping.json")
    SETTINGS_FILE: str = str(BASE_DIR / "settings.json")
