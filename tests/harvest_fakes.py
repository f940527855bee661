"""Scripted stand-ins for the screenshot, OCR and swipe collaborators of a harvest."""

import time

from PIL import Image

from handlers.harvest_models import CaptureResult, RecognitionResult, TextRegion

FRAME_WIDTH = 1080
FRAME_HEIGHT = 2000


def make_frame(width=FRAME_WIDTH, height=FRAME_HEIGHT):
    return Image.new("L", (width, height))


def region(text, top, height=40, left=100, right=500):
    return TextRegion(text=text, bounding_box=(left, top, right, top + height))


def screen(*names, header="通讯录", start_top=200, row_height=120):
    """Recognition result for a contact list screen showing the given names."""
    regions = [region(header, 80)]
    for index, name in enumerate(names):
        regions.append(region(name, start_top + index * row_height))
    return RecognitionResult(
        success=True,
        text_regions=regions,
        full_text="\n".join(r.text for r in regions),
    )


class ScriptedCapture:
    """Returns one scripted CaptureResult per call, repeating the last one when exhausted."""

    def __init__(self, results=None, delay=0.0):
        self.results = list(results) if results is not None else None
        self.delay = delay
        self.calls = 0

    def capture(self):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.results is None:
            return CaptureResult(success=True, frame=make_frame())
        index = min(self.calls - 1, len(self.results) - 1)
        return self.results[index]


class ScriptedRecognizer:
    """Returns one scripted RecognitionResult per call, repeating the last one when exhausted."""

    def __init__(self, results):
        self.results = list(results)
        self.calls = 0

    def recognize(self, frame):
        self.calls += 1
        result = self.results[min(self.calls - 1, len(self.results) - 1)]
        if isinstance(result, Exception):
            raise result
        return result


class EndlessRecognizer:
    """Every frame shows two names never seen before, so the list never ends."""

    def __init__(self):
        self.calls = 0

    def recognize(self, frame):
        self.calls += 1
        return screen(f"联系人{self.calls}a", f"联系人{self.calls}b")


class RecordingScroller:
    def __init__(self, width=FRAME_WIDTH, height=FRAME_HEIGHT):
        self.width = width
        self.height = height
        self.swipes = []

    def get_screen_bounds(self):
        return self.width, self.height

    def swipe(self, x1, y1, x2, y2, duration_ms):
        self.swipes.append((x1, y1, x2, y2, duration_ms))
