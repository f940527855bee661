import logging
import math
from typing import Callable, List, Optional

from handlers.contact_filters import ContactCandidateFilter
from handlers.harvest_models import (
    CaptureResult,
    ContactEntry,
    HarvestEmpty,
    HarvestFailure,
    HarvestOutcome,
    HarvestSuccess,
    HarvestTimeout,
    RecognitionResult,
)
from handlers.harvest_tracking import (
    ContactAccumulator,
    TerminationDetector,
    compute_frame_digest,
)
from server import config
from server.ansi_colors import BRIGHT_GREEN, BRIGHT_RED, BRIGHT_YELLOW, RESET
from server.utils.deadline_utils import DeadlineExceeded, HarvestDeadline
from views.core.harvest_state import HarvestState

logger = logging.getLogger(__name__)


def _validate_timeout(timeout_seconds):
    if not math.isfinite(timeout_seconds) or timeout_seconds <= 0:
        raise ValueError(f"timeout_seconds must be a positive finite number, got {timeout_seconds}")


class ContactsHandlerScroll:
    """Scrolls through a contact list screen by screen and collects every name on it.

    Collaborators are injected by the caller, which also owns their lifecycle:
        capture: object with capture() -> CaptureResult
        recognizer: object with recognize(frame) -> RecognitionResult
        scroller: object with get_screen_bounds() -> (width, height) and
                  swipe(x1, y1, x2, y2, duration_ms)
    """

    def __init__(
        self,
        capture,
        recognizer,
        scroller,
        candidate_filter: Optional[ContactCandidateFilter] = None,
        timeout_seconds: float = config.HARVEST_TIMEOUT_SECONDS,
        stability_threshold: int = config.STABILITY_THRESHOLD,
        scroll_ratio: float = config.SCROLL_RATIO,
        scroll_duration_ms: int = config.SCROLL_DURATION_MS,
        stabilize_delay_ms: int = config.STABILIZE_DELAY_MS,
    ):
        _validate_timeout(timeout_seconds)
        if stability_threshold < 1:
            raise ValueError(f"stability_threshold must be at least 1, got {stability_threshold}")
        if not 0.5 < scroll_ratio < 1:
            raise ValueError(f"scroll_ratio must be between 0.5 and 1, got {scroll_ratio}")
        if scroll_duration_ms < 0 or stabilize_delay_ms < 0:
            raise ValueError("Scroll duration and stabilize delay must not be negative")

        self.capture = capture
        self.recognizer = recognizer
        self.scroller = scroller
        self.candidate_filter = candidate_filter or ContactCandidateFilter()
        self.timeout_seconds = timeout_seconds
        self.stability_threshold = stability_threshold
        self.scroll_ratio = scroll_ratio
        self.scroll_duration_ms = scroll_duration_ms
        self.stabilize_delay_ms = stabilize_delay_ms

        # Stats of the most recent harvest, for logging and API responses
        self.state = HarvestState.INIT
        self.scroll_count = 0
        self.page_count = 0
        self.stop_reason = None
        # Collaborator call still running after the deadline gave up on it
        self.abandoned_call = None
        self._deadline: Optional[HarvestDeadline] = None

    def cancel(self):
        """Stop the running harvest at its next loop boundary. Contacts found so far are kept."""
        deadline = self._deadline
        if deadline is not None:
            logger.info("Cancelling contact harvest")
            deadline.cancel()

    def _log_page_summary(self, page_number, region_count, candidate_count, new_contacts, total_found):
        """Log a concise summary of contacts found on the current screen.

        Args:
            page_number: Current screen number
            region_count: Number of OCR text regions on the screen
            candidate_count: Number of regions that passed the contact name rules
            new_contacts: Contacts seen for the first time on this screen
            total_found: Total number of unique contacts found so far
        """
        page_info = (
            f"{BRIGHT_YELLOW}Screen {page_number}:{RESET} {region_count} regions, "
            f"{candidate_count} candidates, {BRIGHT_GREEN}{len(new_contacts)}{RESET} new, "
            f"total {BRIGHT_GREEN}{total_found}{RESET}"
        )

        if new_contacts:
            separator = "\n\t\t\t"
            joined_names = separator.join(contact.name for contact in new_contacts)
            logger.info(f"{page_info}:{separator}{joined_names}")
        else:
            logger.info(page_info)

    def _get_swipe_coordinates(self):
        """Return (x1, y1, x2, y2) for one upward swipe across the current screen."""
        width, height = self.scroller.get_screen_bounds()
        center_x = width // 2
        start_y = int(height * self.scroll_ratio)
        end_y = int(height * (1 - self.scroll_ratio))
        return center_x, start_y, center_x, end_y

    def _scroll_once(self):
        x1, y1, x2, y2 = self._get_swipe_coordinates()
        self.scroller.swipe(x1, y1, x2, y2, self.scroll_duration_ms)
        self.scroll_count += 1
        logger.debug(f"Scroll #{self.scroll_count}: ({x1}, {y1}) -> ({x2}, {y2})")

    def _notify(self, callback, *args, **kwargs):
        if not callback:
            return
        try:
            callback(*args, **kwargs)
        except Exception as e:
            logger.error(f"Error in harvest callback: {e}", exc_info=True)

    def _capture_frame(self, deadline: HarvestDeadline) -> CaptureResult:
        self.state = HarvestState.CAPTURING
        result = deadline.run(self.capture.capture)
        if result is None:
            return CaptureResult.failed("Capture returned no result")
        if result.success and result.frame is None:
            return CaptureResult.failed("Capture returned no frame")
        return result

    def _recognize_frame(self, deadline: HarvestDeadline, frame) -> RecognitionResult:
        self.state = HarvestState.RECOGNIZING
        result = deadline.run(self.recognizer.recognize, frame)
        if result is None:
            return RecognitionResult.failed("Recognizer returned no result")
        return result

    def _scroll_through_contacts(self, deadline: HarvestDeadline, accumulator, detector, callback=None):
        """Run capture/recognize/extract/scroll iterations until the list stops moving.

        Returns:
            HarvestFailure describing a collaborator failure that ended the loop, or None
            if the loop ended because the screen stopped changing.

        Raises:
            DeadlineExceeded: if the deadline passes at a loop boundary or mid-call
        """
        while True:
            if deadline.cancelled:
                raise DeadlineExceeded("Harvest cancelled")
            if deadline.expired():
                raise DeadlineExceeded(f"Deadline of {deadline.timeout_seconds}s passed")

            self.page_count += 1

            # 1. Screenshot
            screenshot = self._capture_frame(deadline)
            if not screenshot.success:
                logger.error(f"Screenshot failed: {screenshot.error}")
                self.stop_reason = f"Screenshot failed: {screenshot.error}"
                return HarvestFailure.CAPTURE_FAILED

            # 2. OCR
            recognition = self._recognize_frame(deadline, screenshot.frame)
            if not recognition.success:
                logger.error(f"OCR failed: {recognition.error}")
                self.stop_reason = f"OCR failed: {recognition.error}"
                return HarvestFailure.RECOGNITION_FAILED

            # 3. Extract contacts and dedupe against what we already have
            self.state = HarvestState.EXTRACTING
            frame_width, frame_height = screenshot.frame.size
            regions = recognition.text_regions or []
            candidates = self.candidate_filter.extract_contacts(regions, frame_width, frame_height)
            new_contacts = accumulator.add(candidates)
            self._log_page_summary(self.page_count, len(regions), len(candidates), new_contacts, len(accumulator))
            if new_contacts:
                self._notify(callback, list(new_contacts))

            # 4. Stop once the screen has stopped changing
            self.state = HarvestState.CHECKING_TERMINATION
            digest = compute_frame_digest(recognition.full_text, regions)
            if detector.observe(digest):
                logger.info(
                    f"Screen content identical for {detector.identical_frames} consecutive screens, stopping scroll"
                )
                self.stop_reason = "Reached end of list"
                return None

            # 5. Scroll
            self.state = HarvestState.SCROLLING
            self._scroll_once()

            # 6. Wait for the list to settle
            self.state = HarvestState.STABILIZING
            deadline.wait(self.stabilize_delay_ms / 1000.0)

    def harvest(self, callback: Optional[Callable] = None, timeout_seconds: Optional[float] = None) -> HarvestOutcome:
        """Scroll through the visible contact list and collect every contact name.

        Contacts found before a collaborator failure, an unexpected error, a
        cancellation or the deadline are always kept in the outcome.

        Args:
            callback: Optional function receiving each batch of new contacts as it is
                      found, then callback(None, done=True, total=n) on completion or
                      callback(None, error=reason) when the harvest produced no contacts
                      or timed out.
            timeout_seconds: Overrides the configured deadline for this run

        Returns:
            HarvestSuccess, HarvestEmpty or HarvestTimeout

        Raises:
            ValueError: if timeout_seconds is not a positive finite number. Nothing
                        else escapes once the harvest has started.
        """
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        _validate_timeout(timeout)

        accumulator = ContactAccumulator()
        self.state = HarvestState.INIT
        self.scroll_count = 0
        self.page_count = 0
        self.stop_reason = None
        self.abandoned_call = None
        error_reason = None

        logger.info(f"Starting contact list scroll harvest (timeout {timeout}s)")

        with HarvestDeadline(timeout) as deadline:
            self._deadline = deadline
            try:
                detector = TerminationDetector(self.stability_threshold)
                failure = self._scroll_through_contacts(deadline, accumulator, detector, callback)
            except DeadlineExceeded as e:
                self.state = HarvestState.TIMED_OUT
                self.stop_reason = str(e)
                self.abandoned_call = deadline.abandoned_future
                partial = tuple(accumulator.contacts)
                if deadline.cancelled:
                    reason = "Reading contacts was cancelled"
                else:
                    reason = f"Reading contacts timed out after {timeout}s"
                logger.warning(
                    f"{BRIGHT_RED}{reason}{RESET} after {deadline.elapsed():.1f}s "
                    f"with {len(partial)} contacts, {self.scroll_count} scrolls"
                )
                self._notify(callback, None, error=reason)
                return HarvestTimeout(reason=reason, partial_contacts=partial)
            except Exception as e:
                self.state = HarvestState.FAILED
                self.stop_reason = str(e)
                logger.error(f"Error scrolling through contact list: {e}", exc_info=True)
                failure = HarvestFailure.UNEXPECTED_ERROR
                error_reason = f"Reading contacts failed: {e}"
            finally:
                self._deadline = None

        if error_reason is None:
            self.state = HarvestState.DONE
        contacts: List[ContactEntry] = list(accumulator.contacts)
        logger.info(
            f"Scroll harvest finished: {len(contacts)} contacts, {self.scroll_count} scrolls, "
            f"{self.page_count} screens ({self.stop_reason})"
        )

        if not contacts:
            reason = error_reason or "No contacts recognized"
            if failure is not None and error_reason is None:
                reason = f"{reason}: {self.stop_reason}"
            self._notify(callback, None, error=reason)
            return HarvestEmpty(reason=reason, failure=failure or HarvestFailure.NO_ENTRIES)

        self._notify(callback, None, done=True, total=len(contacts))
        return HarvestSuccess(contacts=tuple(contacts))
