"""Contacts resource for harvesting the device's contact list."""

import logging
import math
import time

from flask import request
from flask_restful import Resource

from handlers.harvest_models import HarvestEmpty, HarvestFailure, HarvestSuccess, HarvestTimeout

logger = logging.getLogger(__name__)


def outcome_to_response(outcome, scroll_count=0):
    """Map a harvest outcome to a JSON body and HTTP status code."""
    body = outcome.to_dict()
    body["scroll_count"] = scroll_count

    if isinstance(outcome, HarvestSuccess):
        return body, 200
    if isinstance(outcome, HarvestTimeout):
        return body, 504
    if isinstance(outcome, HarvestEmpty) and outcome.failure == HarvestFailure.UNEXPECTED_ERROR:
        return body, 500
    return body, 404


class ContactsResource(Resource):
    """Resource for reading every contact on the current contact list screen."""

    def __init__(self, server_instance=None):
        """Initialize the resource.

        Args:
            server_instance: The AutomationServer instance
        """
        self.server = server_instance
        super().__init__()

    def get(self):
        """Scroll through the contact list and return every contact found."""
        timeout = None
        timeout_param = request.args.get("timeout")
        if timeout_param:
            try:
                timeout = float(timeout_param)
            except ValueError:
                return {"success": False, "error": f"Invalid timeout: {timeout_param}"}, 400
            if not math.isfinite(timeout) or timeout <= 0:
                return {"success": False, "error": "timeout must be a positive number of seconds"}, 400

        from_top = request.args.get("from_top", "0").lower() in ("1", "true", "yes")

        harvest_lock = self.server.harvest_lock
        if not harvest_lock.acquire(blocking=False):
            return {"success": False, "error": "A contact harvest is already running"}, 409

        start_time = time.time()
        abandoned_call = None
        try:
            automator = self.server.get_automator()
            outcome = automator.read_contacts(timeout=timeout, from_top=from_top)
            if outcome is None:
                return {"success": False, "error": "Could not connect to the device"}, 503

            handler = automator.contacts_handler
            scroll_count = handler.scroll_count if handler else 0
            abandoned_call = handler.abandoned_call if handler else None
            logger.info(
                f"Contact harvest returned {type(outcome).__name__} with {len(outcome.entries)} contacts "
                f"in {time.time() - start_time:.1f}s"
            )
            return outcome_to_response(outcome, scroll_count)
        except Exception as e:
            logger.error(f"Error reading contacts: {e}", exc_info=True)
            return {"success": False, "error": f"Reading contacts failed: {e}"}, 500
        finally:
            if abandoned_call is not None and not abandoned_call.done():
                # The device is still busy with a screenshot or OCR call the deadline gave up on
                logger.warning("Keeping the device locked until the abandoned harvest call returns")
                abandoned_call.add_done_callback(lambda _: harvest_lock.release())
            else:
                harvest_lock.release()
