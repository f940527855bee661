"""Automation server core module holding the device automator shared by API requests."""

import logging
import threading

from automator import ContactsAutomator

logger = logging.getLogger(__name__)


class AutomationServer:
    _instance = None

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, automator_factory=ContactsAutomator):
        if self._initialized:
            return
        self._initialized = True

        self.automator_factory = automator_factory
        self.automator = None
        # One harvest per device at a time; swipes from two harvests would interleave
        self.harvest_lock = threading.Lock()

    @classmethod
    def get_instance(cls):
        """Get the singleton instance of AutomationServer."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """Drop the singleton, cleaning up its automator. Used on shutdown and in tests."""
        if cls._instance is not None and cls._instance._initialized:
            cls._instance.cleanup()
        cls._instance = None

    def get_automator(self):
        """Get the automator, creating it on first use."""
        if self.automator is None:
            logger.info("Creating contacts automator")
            self.automator = self.automator_factory()
        return self.automator

    def cleanup(self):
        if self.automator is not None:
            try:
                self.automator.cleanup()
            except Exception as e:
                logger.warning(f"Error cleaning up automator: {e}", exc_info=True)
            self.automator = None
