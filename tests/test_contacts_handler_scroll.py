"""Tests for the scroll harvest loop, driven by scripted collaborators."""

import sys
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from handlers.contacts_handler_scroll import ContactsHandlerScroll
from handlers.harvest_models import (
    CaptureResult,
    ContactEntry,
    HarvestEmpty,
    HarvestFailure,
    HarvestSuccess,
    HarvestTimeout,
    RecognitionResult,
)
from tests.harvest_fakes import (
    EndlessRecognizer,
    RecordingScroller,
    ScriptedCapture,
    ScriptedRecognizer,
    make_frame,
    screen,
)
from views.core.harvest_state import HarvestState


def make_handler(recognizer, capture=None, scroller=None, **kwargs):
    kwargs.setdefault("timeout_seconds", 5)
    kwargs.setdefault("stabilize_delay_ms", 0)
    return ContactsHandlerScroll(
        capture=capture or ScriptedCapture(),
        recognizer=recognizer,
        scroller=scroller or RecordingScroller(),
        **kwargs,
    )


def names(outcome):
    return [contact.name for contact in outcome.entries]


class TestHarvestLoop:
    def test_five_frame_list(self):
        """Overlapping screens are merged and the loop stops after three identical frames."""
        recognizer = ScriptedRecognizer(
            [
                screen("a1", "b1", "c1"),
                screen("c1", "d1", "e1"),
                screen("e1", "f1"),
                screen("e1", "f1"),
                screen("e1", "f1"),
            ]
        )
        scroller = RecordingScroller()
        handler = make_handler(recognizer, scroller=scroller)

        outcome = handler.harvest()

        assert isinstance(outcome, HarvestSuccess)
        assert names(outcome) == ["a1", "b1", "c1", "d1", "e1", "f1"]
        assert scroller.swipes == [(540, 1400, 540, 600, 300)] * 4
        assert recognizer.calls == 5
        assert handler.scroll_count == 4
        assert handler.page_count == 5
        assert handler.state == HarvestState.DONE
        assert handler.state.is_terminal
        assert handler.stop_reason == "Reached end of list"

    def test_identical_first_frames_stop_without_extra_swipes(self):
        recognizer = ScriptedRecognizer([screen("张三", "李四")])
        scroller = RecordingScroller()

        outcome = make_handler(recognizer, scroller=scroller).harvest()

        assert names(outcome) == ["张三", "李四"]
        assert len(scroller.swipes) == 2

    def test_change_resets_the_stability_run(self):
        recognizer = ScriptedRecognizer(
            [screen("a1"), screen("a1"), screen("b1"), screen("b1"), screen("b1")]
        )

        outcome = make_handler(recognizer).harvest()

        assert names(outcome) == ["a1", "b1"]
        assert recognizer.calls == 5

    def test_stability_threshold_is_configurable(self):
        recognizer = ScriptedRecognizer([screen("a1"), screen("a1")])
        scroller = RecordingScroller()

        make_handler(recognizer, scroller=scroller, stability_threshold=2).harvest()

        assert recognizer.calls == 2
        assert len(scroller.swipes) == 1

    def test_non_contact_text_is_never_harvested(self):
        frame = RecognitionResult(
            success=True,
            text_regions=screen("王五", "12:30", "123456", "设置").text_regions,
            full_text="static",
        )

        outcome = make_handler(ScriptedRecognizer([frame])).harvest()

        assert names(outcome) == ["王五"]

    def test_swipe_uses_scroller_bounds_and_ratio(self):
        scroller = RecordingScroller(width=720, height=1600)
        handler = make_handler(
            ScriptedRecognizer([screen("a1")]), scroller=scroller, scroll_ratio=0.75, scroll_duration_ms=500
        )

        handler.harvest()

        assert scroller.swipes[0] == (360, 1200, 360, 400, 500)

    def test_empty_full_text_falls_back_to_region_digest(self):
        frame = RecognitionResult(success=True, text_regions=screen("a1", "b1").text_regions, full_text="")

        outcome = make_handler(ScriptedRecognizer([frame])).harvest()

        assert isinstance(outcome, HarvestSuccess)
        assert names(outcome) == ["a1", "b1"]


class TestHarvestFailures:
    def test_all_captures_fail(self):
        capture = ScriptedCapture([CaptureResult.failed("adb offline")])
        recognizer = ScriptedRecognizer([screen("a1")])
        scroller = RecordingScroller()

        outcome = make_handler(recognizer, capture=capture, scroller=scroller).harvest()

        assert isinstance(outcome, HarvestEmpty)
        assert outcome.failure == HarvestFailure.CAPTURE_FAILED
        assert "adb offline" in outcome.reason
        assert outcome.entries == ()
        assert recognizer.calls == 0
        assert scroller.swipes == []

    def test_capture_without_frame_counts_as_failure(self):
        capture = ScriptedCapture([CaptureResult(success=True, frame=None)])

        outcome = make_handler(ScriptedRecognizer([screen("a1")]), capture=capture).harvest()

        assert isinstance(outcome, HarvestEmpty)
        assert outcome.failure == HarvestFailure.CAPTURE_FAILED

    def test_recognition_failure_on_first_frame(self):
        recognizer = ScriptedRecognizer([RecognitionResult.failed("quota exceeded")])

        outcome = make_handler(recognizer).harvest()

        assert isinstance(outcome, HarvestEmpty)
        assert outcome.failure == HarvestFailure.RECOGNITION_FAILED

    def test_recognition_failure_after_entries_keeps_them(self):
        recognizer = ScriptedRecognizer(
            [screen("a1", "b1"), screen("c1"), RecognitionResult.failed("quota exceeded")]
        )

        outcome = make_handler(recognizer).harvest()

        assert isinstance(outcome, HarvestSuccess)
        assert names(outcome) == ["a1", "b1", "c1"]

    def test_capture_failure_mid_harvest_keeps_entries(self):
        ok = CaptureResult(success=True, frame=make_frame())
        capture = ScriptedCapture([ok, ok, CaptureResult.failed("device gone")])
        recognizer = ScriptedRecognizer([screen("a1"), screen("b1")])

        outcome = make_handler(recognizer, capture=capture).harvest()

        assert isinstance(outcome, HarvestSuccess)
        assert names(outcome) == ["a1", "b1"]

    def test_only_excluded_labels_gives_empty(self):
        recognizer = ScriptedRecognizer([screen("设置", "搜索", header="通讯录")])

        outcome = make_handler(recognizer).harvest()

        assert isinstance(outcome, HarvestEmpty)
        assert outcome.failure == HarvestFailure.NO_ENTRIES
        assert outcome.reason == "No contacts recognized"

    def test_recognizer_exception_is_reported_not_raised(self):
        recognizer = ScriptedRecognizer([RuntimeError("processor crashed")])

        outcome = make_handler(recognizer).harvest()

        assert isinstance(outcome, HarvestEmpty)
        assert outcome.failure == HarvestFailure.UNEXPECTED_ERROR
        assert "processor crashed" in outcome.reason

    def test_swipe_exception_keeps_contacts_already_found(self):
        scroller = RecordingScroller()
        scroller.swipe = MagicMock(side_effect=RuntimeError("session closed"))

        outcome = make_handler(ScriptedRecognizer([screen("a1"), screen("b1")]), scroller=scroller).harvest()

        assert isinstance(outcome, HarvestSuccess)
        assert names(outcome) == ["a1"]

    def test_dead_session_after_first_swipe_keeps_first_screen(self):
        scroller = RecordingScroller()
        bounds = MagicMock(
            side_effect=[(1080, 2000), RuntimeError("A session is either terminated or not started")]
        )
        scroller.get_screen_bounds = bounds
        recognizer = ScriptedRecognizer([screen("a1", "b1"), screen("c1", "d1")])
        callback = MagicMock()

        handler = make_handler(recognizer, scroller=scroller)
        outcome = handler.harvest(callback=callback)

        assert isinstance(outcome, HarvestSuccess)
        assert names(outcome) == ["a1", "b1", "c1", "d1"]
        assert handler.state == HarvestState.FAILED
        assert "session" in handler.stop_reason
        assert callback.call_args.kwargs == {"done": True, "total": 4}

    def test_capture_exception_after_entries_keeps_them(self):
        ok = CaptureResult(success=True, frame=make_frame())
        capture = ScriptedCapture([ok])
        capture.capture = MagicMock(side_effect=[ok, ConnectionError("adb went away")])

        outcome = make_handler(ScriptedRecognizer([screen("a1")]), capture=capture).harvest()

        assert isinstance(outcome, HarvestSuccess)
        assert names(outcome) == ["a1"]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"stability_threshold": 0},
            {"scroll_ratio": 0.5},
            {"scroll_ratio": 1.0},
            {"scroll_duration_ms": -1},
            {"stabilize_delay_ms": -1},
            {"timeout_seconds": 0},
            {"timeout_seconds": float("inf")},
            {"timeout_seconds": float("nan")},
        ],
    )
    def test_invalid_configuration_is_rejected(self, kwargs):
        with pytest.raises(ValueError):
            make_handler(EndlessRecognizer(), **kwargs)


class TestHarvestDeadline:
    @pytest.mark.timeout(5)
    def test_timeout_cuts_the_settle_delay_and_keeps_partial_contacts(self):
        recognizer = EndlessRecognizer()
        handler = make_handler(recognizer, timeout_seconds=0.05, stabilize_delay_ms=800)

        start = time.monotonic()
        outcome = handler.harvest()
        elapsed = time.monotonic() - start

        assert isinstance(outcome, HarvestTimeout)
        assert elapsed < 0.75
        assert len(outcome.entries) >= 2
        assert outcome.entries[:2] == (ContactEntry("联系人1a"), ContactEntry("联系人1b"))
        assert handler.state == HarvestState.TIMED_OUT
        assert handler.state.is_terminal

    @pytest.mark.timeout(5)
    def test_slow_capture_is_abandoned_at_the_deadline(self):
        capture = ScriptedCapture(delay=1.0)

        start = time.monotonic()
        outcome = make_handler(EndlessRecognizer(), capture=capture, timeout_seconds=0.1).harvest()
        elapsed = time.monotonic() - start

        assert isinstance(outcome, HarvestTimeout)
        assert outcome.entries == ()
        assert elapsed < 0.75

    def test_per_call_timeout_overrides_configured_one(self):
        handler = make_handler(EndlessRecognizer(), timeout_seconds=60, stabilize_delay_ms=50)

        outcome = handler.harvest(timeout_seconds=0.05)

        assert isinstance(outcome, HarvestTimeout)
        assert "0.05" in outcome.reason

    def test_timeout_to_dict_lists_partial_contacts(self):
        outcome = make_handler(EndlessRecognizer(), timeout_seconds=0.05, stabilize_delay_ms=100).harvest()

        body = outcome.to_dict()

        assert body["success"] is False
        assert body["failure"] == "timeout"
        assert {"name": "联系人1a"} in body["partial_contacts"]


class TestHarvestCallback:
    def test_callback_receives_new_batches_then_done(self):
        recognizer = ScriptedRecognizer([screen("a1", "b1"), screen("b1", "c1"), screen("b1", "c1")])
        callback = MagicMock()

        make_handler(recognizer, stability_threshold=2).harvest(callback=callback)

        calls = callback.call_args_list
        assert calls[0].args == ([ContactEntry("a1"), ContactEntry("b1")],)
        assert calls[1].args == ([ContactEntry("c1")],)
        assert calls[-1].args == (None,)
        assert calls[-1].kwargs == {"done": True, "total": 3}
        assert len(calls) == 3

    def test_callback_receives_error_when_nothing_found(self):
        callback = MagicMock()
        capture = ScriptedCapture([CaptureResult.failed("no device")])

        make_handler(EndlessRecognizer(), capture=capture).harvest(callback=callback)

        callback.assert_called_once()
        assert callback.call_args.args == (None,)
        assert "no device" in callback.call_args.kwargs["error"]

    def test_failing_callback_does_not_stop_the_harvest(self):
        callback = MagicMock(side_effect=ValueError("client went away"))

        outcome = make_handler(ScriptedRecognizer([screen("a1")])).harvest(callback=callback)

        assert isinstance(outcome, HarvestSuccess)
        assert names(outcome) == ["a1"]

    def test_harvest_resets_stats_between_runs(self):
        handler = make_handler(ScriptedRecognizer([screen("a1")]))

        handler.harvest()
        first_scrolls = handler.scroll_count
        handler.recognizer = ScriptedRecognizer([screen("b1")])
        outcome = handler.harvest()

        assert handler.scroll_count == first_scrolls
        assert names(outcome) == ["b1"]


class TestHarvestTimeoutArguments:
    @pytest.mark.parametrize("timeout", [float("inf"), float("nan"), 0, -1])
    def test_invalid_per_call_timeout_is_rejected_before_any_work(self, timeout):
        capture = ScriptedCapture()
        handler = make_handler(ScriptedRecognizer([screen("a1")]), capture=capture)

        with pytest.raises(ValueError):
            handler.harvest(timeout_seconds=timeout)
        assert capture.calls == 0

    @pytest.mark.timeout(5)
    def test_abandoned_call_is_exposed_until_it_returns(self):
        capture = ScriptedCapture(delay=0.5)
        handler = make_handler(EndlessRecognizer(), capture=capture, timeout_seconds=0.05)

        outcome = handler.harvest()

        assert isinstance(outcome, HarvestTimeout)
        assert handler.abandoned_call is not None
        assert not handler.abandoned_call.done()
        handler.abandoned_call.result(timeout=2)

    def test_completed_harvest_has_no_abandoned_call(self):
        handler = make_handler(ScriptedRecognizer([screen("a1")]))

        handler.harvest()

        assert handler.abandoned_call is None


class TestHarvestCancellation:
    @pytest.mark.timeout(5)
    def test_cancel_stops_at_next_boundary_and_keeps_contacts(self):
        handler = make_handler(EndlessRecognizer(), timeout_seconds=30, stabilize_delay_ms=5000)

        def cancel_after_first_batch(new_contacts, **kwargs):
            if new_contacts:
                handler.cancel()

        start = time.monotonic()
        outcome = handler.harvest(callback=cancel_after_first_batch)

        assert time.monotonic() - start < 2
        assert isinstance(outcome, HarvestTimeout)
        assert outcome.reason == "Reading contacts was cancelled"
        assert names(outcome) == ["联系人1a", "联系人1b"]
        assert handler.scroll_count == 1

    def test_cancel_without_running_harvest_is_a_no_op(self):
        handler = make_handler(ScriptedRecognizer([screen("a1")]))

        handler.cancel()
        outcome = handler.harvest()

        assert isinstance(outcome, HarvestSuccess)
