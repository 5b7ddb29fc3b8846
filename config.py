"""
Configuration settings for the Chatbot Vendor Scanner
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Central configuration class"""

    # API Keys
    OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')

    # Vision model used for verification and welcome scoring
    MODEL = os.getenv('SCANNER_MODEL', "gpt-4o")
    ORACLE_TIMEOUT_SECONDS = float(os.getenv('ORACLE_TIMEOUT_SECONDS', 60))

    # Browser settings
    BROWSER_HEADLESS = _env_bool('BROWSER_HEADLESS', True)
    VIEWPORT_WIDTH = 1280
    VIEWPORT_HEIGHT = 800
    USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/69.0.3497.100 Safari/537.36"
    )

    # Timing
    NAVIGATION_TIMEOUT_MS = int(os.getenv('NAVIGATION_TIMEOUT_MS', 60000))
    NETWORK_IDLE_TIMEOUT_MS = int(os.getenv('NETWORK_IDLE_TIMEOUT_MS', 15000))
    SETTLE_DELAY_SECONDS = float(os.getenv('SETTLE_DELAY_SECONDS', 5))
    CLICK_SETTLE_SECONDS = float(os.getenv('CLICK_SETTLE_SECONDS', 6))
    ENGAGEMENT_TIMEOUT_SECONDS = float(os.getenv('ENGAGEMENT_TIMEOUT_SECONDS', 240))

    # Engagement settings
    MAX_ENGAGEMENT_ATTEMPTS = int(os.getenv('MAX_ENGAGEMENT_ATTEMPTS', 6))
    RETRY_RADIUS_PX = 12
    ENABLE_VISUAL_LOCATOR = _env_bool('ENABLE_VISUAL_LOCATOR', True)
    WELCOME_REQUIRES_VENDOR = _env_bool('WELCOME_REQUIRES_VENDOR', True)

    # Vendor signatures (None = packaged detectors/vendors.json)
    VENDORS_FILE = os.getenv('VENDORS_FILE')

    # Batch mode
    BATCH_CONCURRENCY = int(os.getenv('BATCH_CONCURRENCY', 3))

    # Output directories
    OUTPUT_DIR = Path(os.getenv('SCANNER_OUTPUT_DIR', "scan_output"))
    SAVE_SCREENSHOTS = _env_bool('SAVE_SCREENSHOTS', True)

    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if not cls.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY not found in environment variables")
