"""Session bookkeeping for a contacts harvest: dedup and end-of-list detection."""

import logging
from typing import Iterable, List, Optional, Set

from handlers.harvest_models import ContactEntry, TextRegion

logger = logging.getLogger(__name__)


def compute_frame_digest(full_text: Optional[str], text_regions: Optional[Iterable[TextRegion]] = None) -> str:
    """Reduce a frame's recognized text to one comparable string.

    Uses the recognizer's reading-order full text as-is. When the recognizer
    did not provide one, the region texts are joined line by line instead.
    """
    if full_text:
        return full_text
    if text_regions:
        return "\n".join(region.text for region in text_regions)
    return ""


class ContactAccumulator:
    """Ordered, duplicate-free collection of harvested contacts."""

    def __init__(self):
        self.contacts: List[ContactEntry] = []
        self.seen_names: Set[str] = set()

    def add(self, candidates: Iterable[ContactEntry]) -> List[ContactEntry]:
        """Add candidates in order and return only the ones that were new."""
        added = []
        for candidate in candidates:
            name = candidate.name.strip()
            if not name or name in self.seen_names:
                continue
            entry = candidate if name == candidate.name else ContactEntry(name=name)
            self.seen_names.add(name)
            self.contacts.append(entry)
            added.append(entry)
        return added

    def __len__(self):
        return len(self.contacts)

    def __contains__(self, name):
        return name in self.seen_names


class TerminationDetector:
    """Signals the end of the list once the screen stops changing.

    consecutive_stable counts how many frames in a row repeated the previous
    digest. The list is considered exhausted when stability_threshold frames
    in a row carry the same digest.
    """

    def __init__(self, stability_threshold: int = 3):
        if stability_threshold < 1:
            raise ValueError(f"stability_threshold must be at least 1, got {stability_threshold}")
        self.stability_threshold = stability_threshold
        self.last_digest: Optional[str] = None
        self.consecutive_stable = 0

    @property
    def identical_frames(self) -> int:
        """Length of the current run of identical frames."""
        if self.last_digest is None:
            return 0
        return self.consecutive_stable + 1

    def observe(self, digest: str) -> bool:
        """Record the digest of a new frame. Returns True when scrolling should stop."""
        if self.last_digest is not None and digest == self.last_digest:
            self.consecutive_stable += 1
            logger.debug(
                f"Screen content unchanged ({self.identical_frames}/{self.stability_threshold} identical frames)"
            )
        else:
            self.consecutive_stable = 0
        self.last_digest = digest
        return self.should_stop

    @property
    def should_stop(self) -> bool:
        return self.identical_frames >= self.stability_threshold
