"""Decide whether a recognized text region on the contacts screen is a contact name.

Every rule is a plain function with the signature
``rule(text, bounding_box, frame_width, frame_height) -> bool`` so each can be
tested and swapped on its own. A region is a candidate only when every rule
passes.
"""

import logging
from fractions import Fraction
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from handlers.harvest_models import BoundingBox, ContactEntry, TextRegion
from views.contacts.view_strategies import (
    ABSOLUTE_DATE_PATTERNS,
    BOTTOM_NAV_TOP_RATIO,
    CLOCK_TIME_PATTERN,
    CONTACT_EXCLUSION_LABELS,
    DIGITS_ONLY_PATTERN,
    MAX_NAME_LENGTH,
    MAX_REGION_HEIGHT_RATIO,
    MIN_NAME_LENGTH,
    PICTOGRAPHIC_MIN_CODEPOINT,
    RELATIVE_DAY_TIME_PATTERN,
)

logger = logging.getLogger(__name__)

CandidateRule = Callable[[str, BoundingBox, int, int], bool]


def has_valid_length(text, bounding_box, frame_width, frame_height):
    return MIN_NAME_LENGTH <= len(text.strip()) <= MAX_NAME_LENGTH


def is_not_excluded_label(text, bounding_box, frame_width, frame_height):
    return text.strip() not in CONTACT_EXCLUSION_LABELS


def make_exclusion_rule(labels: Iterable[str]) -> CandidateRule:
    """Build an exclusion rule for a different app's menu labels."""
    excluded = frozenset(labels)

    def is_not_excluded(text, bounding_box, frame_width, frame_height):
        return text.strip() not in excluded

    return is_not_excluded


def is_not_digits_only(text, bounding_box, frame_width, frame_height):
    return not DIGITS_ONLY_PATTERN.match(text.strip())


def is_not_clock_time(text, bounding_box, frame_width, frame_height):
    return not CLOCK_TIME_PATTERN.match(text.strip())


def is_not_relative_day_time(text, bounding_box, frame_width, frame_height):
    return not RELATIVE_DAY_TIME_PATTERN.match(text.strip())


def is_not_absolute_date(text, bounding_box, frame_width, frame_height):
    stripped = text.strip()
    return not any(pattern.match(stripped) for pattern in ABSOLUTE_DATE_PATTERNS)


def _fraction_of(frame_height, ratio) -> Fraction:
    # Exact decimal arithmetic so a top of exactly 85% of the height is not lost to float rounding
    return Fraction(frame_height) * Fraction(str(ratio))


def is_above_bottom_nav(text, bounding_box, frame_width, frame_height):
    return Fraction(bounding_box[1]) <= _fraction_of(frame_height, BOTTOM_NAV_TOP_RATIO)


def is_not_oversized(text, bounding_box, frame_width, frame_height):
    return Fraction(bounding_box[3]) - Fraction(bounding_box[1]) <= _fraction_of(
        frame_height, MAX_REGION_HEIGHT_RATIO
    )


def has_letter_or_pictograph(text, bounding_box, frame_width, frame_height):
    """Require a letter or ideograph, falling back to emoji-only nicknames."""
    stripped = text.strip()
    if any(ch.isalpha() for ch in stripped):
        return True
    return any(ord(ch) > PICTOGRAPHIC_MIN_CODEPOINT for ch in stripped)


DEFAULT_CANDIDATE_RULES: Tuple[Tuple[str, CandidateRule], ...] = (
    ("length", has_valid_length),
    ("excluded_label", is_not_excluded_label),
    ("digits_only", is_not_digits_only),
    ("clock_time", is_not_clock_time),
    ("relative_day_time", is_not_relative_day_time),
    ("absolute_date", is_not_absolute_date),
    ("bottom_nav", is_above_bottom_nav),
    ("oversized", is_not_oversized),
    ("letter_or_pictograph", has_letter_or_pictograph),
)


class ContactCandidateFilter:
    """Applies a set of named rules to OCR text regions."""

    def __init__(self, rules: Optional[Sequence[Tuple[str, CandidateRule]]] = None):
        self.rules = tuple(rules) if rules is not None else DEFAULT_CANDIDATE_RULES

    def with_rule(self, name: str, rule: CandidateRule) -> "ContactCandidateFilter":
        """Return a copy with the named rule replaced, or appended if it is new."""
        replaced = False
        rules = []
        for existing_name, existing_rule in self.rules:
            if existing_name == name:
                rules.append((name, rule))
                replaced = True
            else:
                rules.append((existing_name, existing_rule))
        if not replaced:
            rules.append((name, rule))
        return ContactCandidateFilter(rules)

    def without_rule(self, name: str) -> "ContactCandidateFilter":
        return ContactCandidateFilter([(n, r) for n, r in self.rules if n != name])

    def is_candidate(self, text: str, bounding_box: BoundingBox, frame_width: int, frame_height: int) -> bool:
        if text is None:
            return False
        return all(rule(text, bounding_box, frame_width, frame_height) for _, rule in self.rules)

    def rejection_reasons(
        self, text: str, bounding_box: BoundingBox, frame_width: int, frame_height: int
    ) -> List[str]:
        """Names of every rule the region fails. Empty means it is a candidate."""
        if text is None:
            return ["missing_text"]
        return [name for name, rule in self.rules if not rule(text, bounding_box, frame_width, frame_height)]

    def extract_contacts(
        self, text_regions: Iterable[TextRegion], frame_width: int, frame_height: int
    ) -> List[ContactEntry]:
        """Turn the regions of one frame into contact entries, keeping frame order."""
        contacts = []
        for region in text_regions:
            if not self.is_candidate(region.text, region.bounding_box, frame_width, frame_height):
                if logger.isEnabledFor(logging.DEBUG):
                    reasons = self.rejection_reasons(region.text, region.bounding_box, frame_width, frame_height)
                    logger.debug(f"Rejected '{region.text}': {', '.join(reasons)}")
                continue
            contacts.append(ContactEntry(name=region.text.strip()))
        return contacts


_default_filter = ContactCandidateFilter()


def is_candidate(text: str, bounding_box: BoundingBox, frame_width: int, frame_height: int) -> bool:
    """Check a single region against the default contact name rules."""
    return _default_filter.is_candidate(text, bounding_box, frame_width, frame_height)
