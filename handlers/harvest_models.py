"""Value types passed between the contacts harvest loop and its collaborators."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

BoundingBox = Tuple[int, int, int, int]  # (left, top, right, bottom) in frame pixels


@dataclass(frozen=True)
class TextRegion:
    """One recognized line of text and where it sits in the frame."""

    text: str
    bounding_box: BoundingBox

    @property
    def top(self) -> int:
        return self.bounding_box[1]

    @property
    def height(self) -> int:
        return self.bounding_box[3] - self.bounding_box[1]


@dataclass(frozen=True)
class ContactEntry:
    """A harvested contact. Identity is the trimmed name."""

    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name}


@dataclass
class CaptureResult:
    """Screenshot result from the capture collaborator."""

    success: bool
    frame: Any = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "CaptureResult":
        return cls(success=False, error=error)


@dataclass
class RecognitionResult:
    """OCR result for one frame.

    full_text is the reading-order concatenation of every recognized line and
    is what the frame digest is computed from.
    """

    success: bool
    text_regions: List[TextRegion] = field(default_factory=list)
    full_text: str = ""
    error: Optional[str] = None
    processing_time_ms: int = 0

    @classmethod
    def failed(cls, error: str, processing_time_ms: int = 0) -> "RecognitionResult":
        return cls(success=False, error=error, processing_time_ms=processing_time_ms)


class HarvestFailure(Enum):
    """Why a harvest ended without contacts."""

    NO_ENTRIES = "no_entries"  # Loop finished normally but nothing qualified
    CAPTURE_FAILED = "capture_failed"
    RECOGNITION_FAILED = "recognition_failed"
    UNEXPECTED_ERROR = "unexpected_error"


class HarvestOutcome:
    """Base class for the three results a harvest can produce."""

    success = False

    @property
    def entries(self) -> Tuple[ContactEntry, ...]:
        return ()

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class HarvestSuccess(HarvestOutcome):
    """At least one contact was harvested. Entries are in discovery order."""

    contacts: Tuple[ContactEntry, ...]
    success = True

    @property
    def entries(self) -> Tuple[ContactEntry, ...]:
        return self.contacts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "contacts": [contact.to_dict() for contact in self.contacts],
            "count": len(self.contacts),
        }


@dataclass(frozen=True)
class HarvestEmpty(HarvestOutcome):
    """The harvest finished without a single contact."""

    reason: str
    failure: HarvestFailure = HarvestFailure.NO_ENTRIES

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.reason, "failure": self.failure.value}


@dataclass(frozen=True)
class HarvestTimeout(HarvestOutcome):
    """The global deadline passed before the list was exhausted.

    Contacts found before the deadline are kept in partial_contacts.
    """

    reason: str
    partial_contacts: Tuple[ContactEntry, ...] = ()

    @property
    def entries(self) -> Tuple[ContactEntry, ...]:
        return self.partial_contacts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.reason,
            "failure": "timeout",
            "partial_contacts": [contact.to_dict() for contact in self.partial_contacts],
        }
