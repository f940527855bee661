import logging
import subprocess
from typing import Optional

from appium import webdriver
from appium.options.android import UiAutomator2Options
from urllib3.exceptions import MaxRetryError

from server import config

logger = logging.getLogger(__name__)


class Driver:
    """Owns one Appium session against an Android device."""

    def __init__(self, appium_url: Optional[str] = None, device_id: Optional[str] = None):
        self.driver = None
        self.appium_url = appium_url or config.APPIUM_URL
        self.device_id = device_id or config.DEVICE_ID

    def _get_device_id(self) -> Optional[str]:
        """
        Resolve which device to drive. A configured id is used as-is when adb
        reports it as attached; otherwise the only attached device is used.

        Returns:
            Optional[str]: The device ID if found, None otherwise
        """
        try:
            result = subprocess.run(["adb", "devices"], capture_output=True, text=True, check=True, timeout=10)
        except Exception as e:
            logger.error(f"Error listing adb devices: {e}", exc_info=True)
            return self.device_id

        attached = []
        for line in result.stdout.splitlines()[1:]:
            parts = line.split()
            if len(parts) >= 2 and parts[1] == "device":
                attached.append(parts[0])

        if self.device_id:
            if self.device_id not in attached:
                logger.error(f"Requested device {self.device_id} is not attached (attached: {attached})")
                return None
            return self.device_id

        if len(attached) == 1:
            return attached[0]

        logger.error(f"Expected exactly one attached device, found {len(attached)}: {attached}")
        return None

    def initialize(self) -> bool:
        """Start the Appium session.

        Returns:
            bool: True if the session is ready, False otherwise
        """
        if self.driver:
            return True

        device_id = self._get_device_id()
        if not device_id:
            return False
        self.device_id = device_id

        options = UiAutomator2Options()
        options.platform_name = "Android"
        options.automation_name = "UiAutomator2"
        options.udid = device_id
        options.no_reset = True
        options.new_command_timeout = 300

        try:
            logger.info(f"Connecting to Appium at {self.appium_url} for device {device_id}")
            self.driver = webdriver.Remote(self.appium_url, options=options)
            return True
        except MaxRetryError as e:
            logger.error(f"Appium server at {self.appium_url} is not reachable: {e}")
        except Exception as e:
            logger.error(f"Failed to start Appium session: {e}", exc_info=True)
        self.driver = None
        return False

    def get_appium_driver_instance(self):
        return self.driver

    def get_device_id(self) -> Optional[str]:
        return self.device_id

    def quit(self):
        """End the Appium session."""
        if not self.driver:
            return
        try:
            self.driver.quit()
            logger.info("Appium session closed")
        except Exception as e:
            logger.warning(f"Error during driver quit: {e}", exc_info=True)
        finally:
            self.driver = None
