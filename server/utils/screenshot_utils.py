"""Screenshot utility functions for the contacts harvester.

This module captures the current device screen as a PIL image, either through
the Appium driver or, as a fallback, with ADB screencap.
"""

import logging
import os
import shutil
import subprocess
import tempfile
import time
from io import BytesIO
from typing import Optional

from PIL import Image

from handlers.harvest_models import CaptureResult
from server import config

logger = logging.getLogger(__name__)


def _adb_executable() -> str:
    """Prefer the SDK's adb, then whatever is on PATH."""
    sdk_adb = os.path.join(config.ANDROID_SDK_PATH, "platform-tools", "adb")
    if os.path.exists(sdk_adb):
        return sdk_adb
    return shutil.which("adb") or "adb"


def take_adb_screenshot(device_id: str, output_path: str) -> Optional[str]:
    """Take a fast screenshot using ADB screencap.

    Args:
        device_id: The Android device/emulator ID
        output_path: Path to save the screenshot

    Returns:
        Path to the saved screenshot or None if failed
    """
    try:
        with open(output_path, "wb") as output_file:
            subprocess.run(
                [_adb_executable(), "-s", device_id, "exec-out", "screencap", "-p"],
                stdout=output_file,
                timeout=5,
                check=True,
            )

        if os.path.exists(output_path) and os.path.getsize(output_path) > 1000:
            logger.debug(f"Screenshot saved to {output_path} using ADB screencap")
            return output_path
        else:
            logger.warning("ADB screenshot failed or produced empty file")
    except Exception as e:
        logger.error(f"Error with ADB screenshot: {e}", exc_info=True)

    return None


class ScreenCapture:
    """Captures frames of the current screen for OCR."""

    def __init__(self, driver=None, device_id: Optional[str] = None, save_frames_dir: Optional[str] = None):
        """
        Args:
            driver: Appium driver; its screenshot endpoint is tried first
            device_id: ADB device id for the screencap fallback
            save_frames_dir: If set, every captured frame is written there for debugging
        """
        if driver is None and not device_id:
            raise ValueError("ScreenCapture needs a driver or an ADB device id")
        self.driver = driver
        self.device_id = device_id
        self.save_frames_dir = save_frames_dir
        self.frame_count = 0
        if save_frames_dir:
            os.makedirs(save_frames_dir, exist_ok=True)

    def _capture_with_driver(self) -> Optional[bytes]:
        try:
            return self.driver.get_screenshot_as_png()
        except Exception as e:
            logger.warning(f"Driver screenshot failed: {e}")
            return None

    def _capture_with_adb(self) -> Optional[bytes]:
        with tempfile.NamedTemporaryFile(suffix=".png", delete=False) as temp_file:
            temp_path = temp_file.name
        try:
            if not take_adb_screenshot(self.device_id, temp_path):
                return None
            with open(temp_path, "rb") as img_file:
                return img_file.read()
        finally:
            try:
                os.remove(temp_path)
            except OSError as e:
                logger.debug(f"Failed to remove temporary screenshot {temp_path}: {e}")

    def capture(self) -> CaptureResult:
        """Capture the current screen.

        Returns:
            CaptureResult with a loaded PIL image on success
        """
        png_bytes = None
        if self.driver is not None:
            png_bytes = self._capture_with_driver()
        if not png_bytes and self.device_id:
            png_bytes = self._capture_with_adb()
        if not png_bytes:
            return CaptureResult.failed("Screenshot could not be captured")

        try:
            frame = Image.open(BytesIO(png_bytes))
            frame.load()
        except Exception as e:
            logger.error(f"Error decoding screenshot: {e}", exc_info=True)
            return CaptureResult.failed(f"Invalid screenshot image: {e}")

        self.frame_count += 1
        if self.save_frames_dir:
            frame_path = os.path.join(self.save_frames_dir, f"contacts_{int(time.time())}_{self.frame_count}.png")
            try:
                frame.save(frame_path, format="PNG")
            except Exception as e:
                logger.warning(f"Could not save frame to {frame_path}: {e}")

        logger.debug(f"Captured screen {frame.size[0]}x{frame.size[1]}")
        return CaptureResult(success=True, frame=frame)
