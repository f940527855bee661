import logging
from typing import Tuple

from selenium.webdriver.common.action_chains import ActionChains
from selenium.webdriver.common.actions.interaction import POINTER_TOUCH

logger = logging.getLogger(__name__)


class SmartScroller:
    """Swipe gestures and screen metrics for the contacts harvest, backed by an Appium driver."""

    def __init__(self, driver):
        self.driver = driver

    def get_screen_bounds(self) -> Tuple[int, int]:
        """Return (width, height) of the interactive surface."""
        screen_size = self.driver.get_window_size()
        return int(screen_size["width"]), int(screen_size["height"])

    def swipe(self, start_x: int, start_y: int, end_x: int, end_y: int, duration_ms: int):
        """
        Dispatch a single touch swipe from (start_x, start_y) to (end_x, end_y).
        Uses W3C Actions with ActionBuilder. Errors are logged, not raised.
        """
        # Get ActionBuilder from ActionChains
        action_builder = ActionChains(self.driver).w3c_actions

        # POINTER_TOUCH is 'touch'
        finger = action_builder.add_pointer_input(POINTER_TOUCH, "finger")

        # 1. Move pointer to start position (instantaneous)
        finger.create_pointer_move(duration=0, x=int(start_x), y=int(start_y))
        # 2. Press down (button=0 is the main touch button)
        finger.create_pointer_down(button=0)
        # 3. Small pause so the press registers before movement (seconds)
        finger.create_pause(0.01)
        # 4. Move to the end position over the gesture duration
        finger.create_pointer_move(duration=max(0, int(duration_ms)), x=int(end_x), y=int(end_y))
        # 5. Release
        finger.create_pointer_up(button=0)

        try:
            action_builder.perform()
        except Exception as e:
            logger.error(f"Error performing swipe: {e}")

    def scroll_up(self, scroll_ratio: float = 0.7, duration_ms: int = 300):
        """Swipe down across the middle of the screen so the list moves back up."""
        width, height = self.get_screen_bounds()
        self.swipe(width // 2, int(height * (1 - scroll_ratio)), width // 2, int(height * scroll_ratio), duration_ms)
