"""
Utility functions for OCR (Optical Character Recognition) on contact list screenshots.

This module provides:
1. Google Document AI credential handling
2. Conversion of Document AI layout lines into positioned text regions
3. The ContactOCR recognizer used by the contacts scroll harvest
"""

import base64
import concurrent.futures
import json
import logging
import os
import tempfile
import time
from io import BytesIO
from typing import List, Optional, Tuple

from google.cloud import documentai

from handlers.harvest_models import RecognitionResult, TextRegion
from server import config

logger = logging.getLogger(__name__)


def setup_google_credentials() -> Optional[str]:
    """Setup Google credentials from environment, supporting both file path and base64-encoded JSON.

    Returns:
        Path to the credentials file, or None if no credentials are configured
    """
    # First check for base64-encoded JSON
    base64_creds = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON_BASE64")
    if base64_creds:
        try:
            json_str = base64.b64decode(base64_creds).decode("utf-8")
            # Parse the JSON to validate it
            json.loads(json_str)

            with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as temp_file:
                temp_file.write(json_str)
                temp_path = temp_file.name

            os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = temp_path
            logger.info(f"Created temporary credentials file at {temp_path}")
            return temp_path
        except Exception as e:
            logger.error(f"Failed to decode base64 Google credentials: {e}", exc_info=True)
            return None

    if os.getenv("GOOGLE_APPLICATION_CREDENTIALS"):
        logger.info("Using existing GOOGLE_APPLICATION_CREDENTIALS")
        return os.getenv("GOOGLE_APPLICATION_CREDENTIALS")

    return None


def _layout_text(layout, document_text: str) -> str:
    """Resolve a layout's text anchor against the document text."""
    segments = getattr(layout.text_anchor, "text_segments", None) or []
    parts = []
    for segment in segments:
        start = int(segment.start_index or 0)
        end = int(segment.end_index or 0)
        parts.append(document_text[start:end])
    return "".join(parts).strip()


def _layout_bounding_box(layout, page_width: float, page_height: float) -> Optional[Tuple[int, int, int, int]]:
    """Convert a layout's bounding polygon to (left, top, right, bottom) pixels."""
    poly = layout.bounding_poly
    vertices = list(getattr(poly, "vertices", None) or [])
    if vertices:
        xs = [v.x for v in vertices]
        ys = [v.y for v in vertices]
    else:
        normalized = list(getattr(poly, "normalized_vertices", None) or [])
        if not normalized or not page_width or not page_height:
            return None
        xs = [v.x * page_width for v in normalized]
        ys = [v.y * page_height for v in normalized]
    return int(min(xs)), int(min(ys)), int(round(max(xs))), int(round(max(ys)))


def regions_from_document(document) -> Tuple[List[TextRegion], str]:
    """Extract one text region per layout line, in reading order.

    Args:
        document: A Document AI Document

    Returns:
        Tuple of (text regions, full text with one line per row)
    """
    regions = []
    lines = []
    document_text = document.text or ""

    for page in document.pages:
        page_width = getattr(page.dimension, "width", 0) or 0
        page_height = getattr(page.dimension, "height", 0) or 0
        for line in page.lines:
            text = _layout_text(line.layout, document_text)
            if not text:
                continue
            lines.append(text)
            bounding_box = _layout_bounding_box(line.layout, page_width, page_height)
            if bounding_box is None:
                logger.debug(f"Line '{text}' has no bounding box, skipping region")
                continue
            regions.append(TextRegion(text=text, bounding_box=bounding_box))

    return regions, "\n".join(lines).strip()


class ContactOCR:
    """Recognizes positioned text on contact list screenshots with Google Document AI."""

    def __init__(
        self,
        project_id: Optional[str] = None,
        location: Optional[str] = None,
        processor_id: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        client=None,
    ):
        self.project_id = project_id or config.GOOGLE_PROJECT_ID
        self.location = location or config.GOOGLE_LOCATION
        self.processor_id = processor_id or config.GOOGLE_PROCESSOR_ID
        self.timeout_seconds = timeout_seconds or config.OCR_TIMEOUT_SECONDS
        self._client = client

    def _get_client(self):
        if self._client is None:
            setup_google_credentials()
            client_options = None
            if self.location and self.location != "us":
                client_options = {"api_endpoint": f"{self.location}-documentai.googleapis.com"}
            self._client = documentai.DocumentProcessorServiceClient(client_options=client_options)
        return self._client

    @staticmethod
    def _frame_to_png(frame) -> bytes:
        buffer = BytesIO()
        frame.save(buffer, format="PNG")
        return buffer.getvalue()

    def recognize(self, frame) -> RecognitionResult:
        """Run OCR on a frame.

        Args:
            frame: PIL image of the current screen

        Returns:
            RecognitionResult with regions and full text, or a failed result
        """
        start_time = time.time()

        def elapsed_ms():
            return int((time.time() - start_time) * 1000)

        if not self.project_id or not self.processor_id:
            error_msg = "Google Document AI is not configured. Set GOOGLE_PROJECT_ID and GOOGLE_PROCESSOR_ID"
            logger.error(error_msg)
            return RecognitionResult.failed(error_msg)

        try:
            client = self._get_client()
            processor_name = client.processor_path(self.project_id, self.location, self.processor_id)
            raw_document = documentai.RawDocument(content=self._frame_to_png(frame), mime_type="image/png")
            request = documentai.ProcessRequest(name=processor_name, raw_document=raw_document)

            executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
            future = executor.submit(client.process_document, request=request)
            try:
                result = future.result(timeout=self.timeout_seconds)
            except concurrent.futures.TimeoutError:
                future.cancel()
                error_msg = f"Google Document AI OCR request timed out after {self.timeout_seconds} seconds"
                logger.error(error_msg)
                return RecognitionResult.failed(error_msg, elapsed_ms())
            finally:
                executor.shutdown(wait=False)

            if not result or not result.document:
                error_msg = "No document in Google Document AI response"
                logger.error(error_msg)
                return RecognitionResult.failed(error_msg, elapsed_ms())

            regions, full_text = regions_from_document(result.document)
            processing_time = elapsed_ms()
            logger.debug(f"OCR success: {len(regions)} regions, {processing_time}ms")
            return RecognitionResult(
                success=True,
                text_regions=regions,
                full_text=full_text,
                processing_time_ms=processing_time,
            )

        except Exception as e:
            error_msg = f"Error processing Google Document AI OCR: {e}"
            logger.error(error_msg, exc_info=True)
            return RecognitionResult.failed(error_msg, elapsed_ms())
