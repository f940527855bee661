import os
import platform

# Server settings
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "4098"))

# Paths
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LOGS_DIR = os.path.join(BASE_DIR, "logs")
SCREENSHOTS_DIR = os.path.join(BASE_DIR, "screenshots")

# Logging settings
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # Console level, the log files always get INFO and DEBUG

# Scroll harvest settings
HARVEST_TIMEOUT_SECONDS = float(os.getenv("HARVEST_TIMEOUT_SECONDS", "120"))  # Whole run, not per screen
STABILITY_THRESHOLD = int(os.getenv("HARVEST_STABILITY_THRESHOLD", "3"))  # Identical screens before stopping
SCROLL_RATIO = float(os.getenv("HARVEST_SCROLL_RATIO", "0.7"))  # Swipe from 70% to 30% of the screen height
SCROLL_DURATION_MS = int(os.getenv("HARVEST_SCROLL_DURATION_MS", "300"))
STABILIZE_DELAY_MS = int(os.getenv("HARVEST_STABILIZE_DELAY_MS", "800"))  # Let the list settle after a swipe

# OCR settings
OCR_TIMEOUT_SECONDS = float(os.getenv("OCR_TIMEOUT_SECONDS", "10"))
GOOGLE_PROJECT_ID = os.getenv("GOOGLE_PROJECT_ID")
GOOGLE_LOCATION = os.getenv("GOOGLE_LOCATION", "us")
GOOGLE_PROCESSOR_ID = os.getenv("GOOGLE_PROCESSOR_ID")

# Device settings
APPIUM_URL = os.getenv("APPIUM_URL", "http://127.0.0.1:4723")
DEVICE_ID = os.getenv("ANDROID_DEVICE_ID")

# Default Android SDK path
DEFAULT_ANDROID_SDK = "/opt/android-sdk"
# Alternative for macOS
if platform.system() == "Darwin":
    DEFAULT_ANDROID_SDK = os.path.expanduser("~/Library/Android/sdk")

# Get Android SDK path from environment variable or use default
ANDROID_SDK_PATH = os.environ.get("ANDROID_HOME", DEFAULT_ANDROID_SDK)


def ensure_directories():
    """Create the log and screenshot directories if they don't exist yet."""
    for directory in [LOGS_DIR, SCREENSHOTS_DIR]:
        os.makedirs(directory, exist_ok=True)
