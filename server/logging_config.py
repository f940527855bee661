import logging
import os
import sys
from datetime import datetime

import pytz

from server import config
from server.ansi_colors import (
    BRIGHT_YELLOW,
    GRAY,
    GREEN,
    RED,
    RESET,
    WHITE,
    YELLOW,
    strip_ansi,
)

logger = logging.getLogger(__name__)

COLOR_LOG_FORMAT = (
    f"[%(levelname)5.5s] {GREEN}[%(asctime)s]{RESET} {YELLOW}%(pathname)22s:%(lineno)-4d{RESET} %(message)s"
)
PLAIN_LOG_FORMAT = "[%(levelname)5.5s] [%(asctime)s] %(pathname)22s:%(lineno)-4d %(message)s"
LOG_DATE_FORMAT = "%-m-%-d-%y %H:%M:%S %Z"

# Third-party loggers that are too chatty at DEBUG
QUIET_LIBRARIES = ["selenium", "urllib3", "PIL", "appium", "werkzeug", "google"]


class CustomFilter(logging.Filter):
    """Filter out DEBUG messages from external libraries and selenium logs below INFO."""

    def filter(self, record):
        # Filter out DEBUG messages from site-packages
        if record.levelno == logging.DEBUG and "site-packages" in record.pathname:
            return False
        # Filter out selenium logs below INFO
        if "selenium" in record.pathname and record.levelno < logging.INFO:
            return False
        return True


class RelativePathFormatter(logging.Formatter):
    """Format the pathname relative to the project root and color by level."""

    MAX_PATH_LENGTH = 22

    def __init__(self, *args, use_colors=True, timezone="US/Pacific", **kwargs):
        super().__init__(*args, **kwargs)
        self.use_colors = use_colors
        self.tz = pytz.timezone(timezone)
        self.project_root = config.BASE_DIR

        # Define log level colors
        self.level_colors = {
            logging.DEBUG: GRAY,
            logging.INFO: WHITE,  # Default terminal color, left untouched
            logging.WARNING: BRIGHT_YELLOW,
            logging.ERROR: RED,
            logging.CRITICAL: RED,
        }

    def formatTime(self, record, datefmt=None):
        """Override formatTime to use the configured timezone"""
        ct = datetime.fromtimestamp(record.created, tz=pytz.UTC).astimezone(self.tz)
        return ct.strftime(datefmt or LOG_DATE_FORMAT)

    def _shorten_path(self, pathname):
        if pathname.startswith(self.project_root):
            pathname = os.path.relpath(pathname, self.project_root)

        max_length = self.MAX_PATH_LENGTH
        if len(pathname) <= max_length:
            return pathname

        # Truncate long paths from the left, keeping the filename
        last_slash = pathname.rfind("/")
        filename = pathname[last_slash + 1 :] if last_slash >= 0 else pathname
        if len(filename) >= max_length - 3:
            return "..." + filename[-(max_length - 3) :]

        available_for_path = max_length - len(filename) - 4  # -4 for ".../"
        if available_for_path > 0:
            truncated = "..." + pathname[:last_slash][-available_for_path:] + "/" + filename
        else:
            truncated = ".../" + filename
        return truncated[-max_length:] if len(truncated) > max_length else truncated

    def format(self, record):
        record.pathname = self._shorten_path(record.pathname)
        formatted = super().format(record)

        if not self.use_colors:
            return strip_ansi(formatted)

        level_color = self.level_colors.get(record.levelno, "")
        if level_color and level_color != WHITE:
            level_tag = f"[{record.levelname:5.5s}]"
            formatted = formatted.replace(level_tag, f"{level_color}{level_tag}{RESET}", 1)
            message = record.getMessage()
            # Messages that bring their own colors are left alone
            if "\033[" not in message:
                formatted = formatted.replace(message, f"{level_color}{message}{RESET}", 1)

        return formatted


def setup_logger(logs_dir=None, console_level=None):
    """Configure root logging: colored console, server.log (INFO) and debug_server.log (DEBUG)."""
    logs_dir = logs_dir or config.LOGS_DIR
    if console_level is None:
        console_level = logging.getLevelName(config.LOG_LEVEL.upper())
        if not isinstance(console_level, int):
            console_level = logging.INFO
    os.makedirs(logs_dir, exist_ok=True)

    server_log_file = os.path.join(logs_dir, "server.log")
    debug_log_file = os.path.join(logs_dir, "debug_server.log")

    # Start every run with empty log files
    for log_file in (server_log_file, debug_log_file):
        with open(log_file, "w") as f:
            f.truncate(0)

    use_console_colors = not os.environ.get("NO_COLOR_CONSOLE")
    console_formatter = RelativePathFormatter(
        COLOR_LOG_FORMAT if use_console_colors else PLAIN_LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        use_colors=use_console_colors,
    )
    # File formatters always have colors
    file_formatter = RelativePathFormatter(COLOR_LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    custom_filter = CustomFilter()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(console_formatter)
    console_handler.addFilter(custom_filter)
    root_logger.addHandler(console_handler)

    server_file_handler = logging.FileHandler(server_log_file)
    server_file_handler.setLevel(logging.INFO)
    server_file_handler.setFormatter(file_formatter)
    server_file_handler.addFilter(custom_filter)
    root_logger.addHandler(server_file_handler)

    debug_file_handler = logging.FileHandler(debug_log_file)
    debug_file_handler.setLevel(logging.DEBUG)
    debug_file_handler.setFormatter(file_formatter)
    debug_file_handler.addFilter(custom_filter)
    root_logger.addHandler(debug_file_handler)

    # Configure external libraries to use higher log level
    for lib_name in QUIET_LIBRARIES:
        logging.getLogger(lib_name).setLevel(logging.INFO)

    # Disable Werkzeug's access logs since resources log their own requests
    logging.getLogger("werkzeug._internal").setLevel(logging.WARNING)

    logger.info(f"Logging configured, writing to {server_log_file} and {debug_log_file}")
