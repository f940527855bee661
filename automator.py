import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from driver import Driver
from handlers.contacts_handler_scroll import ContactsHandlerScroll
from server import config
from server.ansi_colors import BOLD, BRIGHT_GREEN, BRIGHT_RED, RESET, style_text
from server.utils.ocr_utils import ContactOCR
from server.utils.screenshot_utils import ScreenCapture
from views.common.scroll_strategies import SmartScroller

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent


def load_environment():
    """Load .env files with secrets for the current ENVIRONMENT."""
    environment = os.getenv("ENVIRONMENT", "DEV").lower()
    if environment == "prod":
        env_file = os.path.join(BASE_DIR, ".env.prod")
    elif environment == "staging":
        env_file = os.path.join(BASE_DIR, ".env.staging")
    else:
        env_file = os.path.join(BASE_DIR, ".env")
    logger.info(f"Loading {environment} environment variables from {env_file}")
    load_dotenv(env_file, override=True)


class ContactsAutomator:
    """Wires the device driver, screenshot, OCR and swipe collaborators into a contacts harvest."""

    def __init__(self, appium_url=None, device_id=None, save_frames=False):
        self.appium_url = appium_url
        self.device_id = device_id
        self.save_frames = save_frames
        self.driver = None
        self._driver_instance = None
        self.contacts_handler = None

    def initialize_driver(self):
        """Initialize the Appium driver and the harvest collaborators."""
        if self.driver:
            return True

        driver = Driver(appium_url=self.appium_url, device_id=self.device_id)
        if not driver.initialize():
            logger.error("Failed to initialize driver")
            return False

        self._driver_instance = driver
        self.driver = driver.get_appium_driver_instance()
        self.device_id = driver.get_device_id()

        save_frames_dir = os.path.join(config.SCREENSHOTS_DIR, "contacts") if self.save_frames else None
        self.contacts_handler = ContactsHandlerScroll(
            capture=ScreenCapture(self.driver, device_id=self.device_id, save_frames_dir=save_frames_dir),
            recognizer=ContactOCR(),
            scroller=SmartScroller(self.driver),
        )
        return True

    def scroll_to_list_top(self, max_swipes=10):
        """Swipe back toward the top of the list before a harvest starts."""
        scroller = SmartScroller(self.driver)
        for _ in range(max_swipes):
            scroller.scroll_up()

    def read_contacts(self, timeout=None, callback=None, from_top=False):
        """Harvest every contact on the visible list.

        Args:
            timeout: Optional deadline in seconds overriding the configured one
            callback: Optional function receiving contacts as they are found
            from_top: Swipe to the top of the list before harvesting

        Returns:
            HarvestOutcome, or None if the driver could not be initialized
        """
        if not self.initialize_driver():
            return None
        if from_top:
            self.scroll_to_list_top()
        return self.contacts_handler.harvest(callback=callback, timeout_seconds=timeout)

    def cancel_harvest(self):
        """Ask a running harvest to stop. It returns the contacts found so far."""
        if self.contacts_handler:
            self.contacts_handler.cancel()

    def cleanup(self):
        """Cancel any running harvest and close the Appium session."""
        self.cancel_harvest()
        if self._driver_instance:
            self._driver_instance.quit()
        self._driver_instance = None
        self.driver = None
        self.contacts_handler = None


def main(argv=None):
    from server.logging_config import setup_logger

    parser = argparse.ArgumentParser(description="Scroll through a contact list and print every contact name")
    parser.add_argument("--device-id", help="ADB device id (defaults to ANDROID_DEVICE_ID or the only device)")
    parser.add_argument("--appium-url", help="Appium server URL (defaults to APPIUM_URL)")
    parser.add_argument("--timeout", type=float, help="Overall deadline in seconds")
    parser.add_argument("--from-top", action="store_true", help="Swipe to the top of the list first")
    parser.add_argument("--save-frames", action="store_true", help="Keep every captured screenshot")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    args = parser.parse_args(argv)

    load_environment()
    setup_logger()

    automator = ContactsAutomator(appium_url=args.appium_url, device_id=args.device_id, save_frames=args.save_frames)
    try:
        outcome = automator.read_contacts(timeout=args.timeout, from_top=args.from_top)
    finally:
        automator.cleanup()

    if outcome is None:
        print(style_text("Could not connect to the device", BRIGHT_RED), file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(outcome.to_dict(), ensure_ascii=False, indent=2))
    elif outcome.success:
        print(style_text(f"Found {len(outcome.entries)} contacts:", BOLD, BRIGHT_GREEN))
        for contact in outcome.entries:
            print(f"  {contact.name}")
    else:
        print(f"{BRIGHT_RED}{outcome.reason}{RESET}", file=sys.stderr)

    return 0 if outcome.success else 1


if __name__ == "__main__":
    sys.exit(main())
