import sys
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from handlers.harvest_models import ContactEntry, TextRegion
from handlers.harvest_tracking import (
    ContactAccumulator,
    TerminationDetector,
    compute_frame_digest,
)


class TestContactAccumulator:
    def test_keeps_first_seen_order_and_drops_duplicates(self):
        accumulator = ContactAccumulator()

        first = accumulator.add([ContactEntry("a"), ContactEntry("b"), ContactEntry("c")])
        second = accumulator.add([ContactEntry("c"), ContactEntry("d"), ContactEntry("e")])

        assert [c.name for c in first] == ["a", "b", "c"]
        assert [c.name for c in second] == ["d", "e"]
        assert [c.name for c in accumulator.contacts] == ["a", "b", "c", "d", "e"]
        assert len(accumulator) == 5

    def test_names_are_compared_after_trimming(self):
        accumulator = ContactAccumulator()

        accumulator.add([ContactEntry("张三")])
        added = accumulator.add([ContactEntry(" 张三 "), ContactEntry(" 李四")])

        assert added == [ContactEntry("李四")]
        assert "李四" in accumulator

    def test_case_is_significant(self):
        accumulator = ContactAccumulator()
        accumulator.add([ContactEntry("Bob"), ContactEntry("bob")])
        assert len(accumulator) == 2

    def test_blank_names_are_ignored(self):
        accumulator = ContactAccumulator()
        assert accumulator.add([ContactEntry("   ")]) == []
        assert len(accumulator) == 0

    def test_seen_names_track_contacts_across_overlapping_batches(self):
        accumulator = ContactAccumulator()
        batches = [
            ["a", "b", "c"],
            [" c", "d ", "e", "d"],
            ["a", "  e  ", "f", "", "f "],
        ]

        for batch in batches:
            accumulator.add([ContactEntry(name) for name in batch])
            assert accumulator.seen_names == {c.name for c in accumulator.contacts}
            assert len(accumulator.contacts) == len(accumulator.seen_names)

        assert [c.name for c in accumulator.contacts] == ["a", "b", "c", "d", "e", "f"]


class TestTerminationDetector:
    def test_three_identical_frames_stop(self):
        detector = TerminationDetector(3)

        assert detector.observe("d") is False
        assert detector.observe("d") is False
        assert detector.observe("d") is True
        assert detector.consecutive_stable == 2

    def test_change_resets_the_run(self):
        detector = TerminationDetector(3)

        assert [detector.observe(d) for d in ["d", "d", "e"]] == [False, False, False]
        assert detector.consecutive_stable == 0
        assert detector.identical_frames == 1

    def test_first_frame_never_matches_even_when_empty(self):
        detector = TerminationDetector(2)

        assert detector.observe("") is False
        assert detector.observe("") is True

    def test_threshold_of_one_stops_immediately(self):
        assert TerminationDetector(1).observe("anything") is True

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            TerminationDetector(0)


class TestFrameDigest:
    def test_uses_full_text(self):
        regions = [TextRegion("a", (0, 0, 1, 1))]
        assert compute_frame_digest("full text", regions) == "full text"

    def test_falls_back_to_region_texts(self):
        regions = [TextRegion("a", (0, 0, 1, 1)), TextRegion("b", (0, 2, 1, 3))]
        assert compute_frame_digest("", regions) == "a\nb"

    def test_nothing_recognized(self):
        assert compute_frame_digest(None) == ""
