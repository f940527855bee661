"""
ANSI color codes for terminal log formatting.

Usage:
    from server.ansi_colors import GREEN, BOLD, RESET
    logger.info(f"{GREEN}{BOLD}Done!{RESET} Harvest finished.")
"""

import re

# Regular colors
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
WHITE = "\033[37m"
GRAY = "\033[90m"

# Bright colors
BRIGHT_RED = "\033[91m"
BRIGHT_GREEN = "\033[92m"
BRIGHT_YELLOW = "\033[93m"

# Text styles
BOLD = "\033[1m"

# Reset all styles and colors
RESET = "\033[0m"


def style_text(text, *styles):
    """Wrap text in the given ANSI styles followed by a reset."""
    if not styles:
        return text
    return f"{''.join(styles)}{text}{RESET}"


def strip_ansi(text):
    """Remove ANSI escape sequences, e.g. before writing colorless output."""
    return re.sub(r"\033\[[0-9;]*m", "", text)
