from enum import Enum, auto


class HarvestState(Enum):
    """Enum representing where the contacts scroll harvest currently is.

    The loop walks CAPTURING through STABILIZING once per screen and ends in
    one of the terminal states.
    """

    INIT = auto()
    CAPTURING = auto()  # Waiting for a screenshot of the list
    RECOGNIZING = auto()  # Waiting for OCR of the screenshot
    EXTRACTING = auto()  # Filtering text regions into contacts
    CHECKING_TERMINATION = auto()  # Comparing this screen with the previous ones
    SCROLLING = auto()  # Swipe dispatched
    STABILIZING = auto()  # Waiting for the list to settle after the swipe
    DONE = auto()
    FAILED = auto()  # Unexpected error inside the loop
    TIMED_OUT = auto()  # Global deadline passed before the list was exhausted

    @property
    def is_terminal(self):
        return self in (HarvestState.DONE, HarvestState.FAILED, HarvestState.TIMED_OUT)
