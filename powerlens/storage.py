from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from .clients import BackendClient
from .errors import RemoteServiceError, ServiceUnavailableError
from .schemas import Feedback
from .settings import settings

logger = logging.getLogger(__name__)

QUEUED_MESSAGE = "Feedback saved locally — will sync when online."
SENT_MESSAGE = "Feedback sent successfully"


class FeedbackQueue:
    """Feedback that could not be delivered yet, persisted as a JSON list."""

    def __init__(self, path: Optional[str] = None) -> None:
        self._items: List[Feedback] = []
        self._lock = threading.Lock()
        self._data_file = Path(path or settings.feedback_queue_path)
        self._load()

    def enqueue(self, feedback: Feedback) -> None:
        with self._lock:
            self._items.append(feedback)
            self._save()

    def list_pending(self) -> List[Feedback]:
        with self._lock:
            return list(self._items)

    def remove(self, feedback: Feedback) -> None:
        with self._lock:
            for i, item in enumerate(self._items):
                if item is feedback:
                    del self._items[i]
                    self._save()
                    return

    def __len__(self) -> int:
        return len(self._items)

    # Persistence
    def _save(self) -> None:
        data = [item.model_dump() for item in self._items]
        try:
            self._data_file.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as exc:
            # The queue still lives in memory for this process
            logger.warning("Could not write feedback queue %s: %s", self._data_file, exc)

    def _load(self) -> None:
        try:
            if self._data_file.exists():
                raw = json.loads(self._data_file.read_text(encoding="utf-8"))
                self._items = [Feedback(**item) for item in raw]
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Ignoring malformed feedback queue %s: %s", self._data_file, exc)
            self._items = []


def _payload(feedback: Feedback) -> dict:
    return {
        "name": feedback.name,
        "location": feedback.location,
        "message": feedback.message,
        "rating": feedback.rating,
        "createdAt": feedback.created_at,
        "householdId": feedback.household_id,
    }


def submit_feedback(feedback: Feedback, client: BackendClient, queue: FeedbackQueue) -> Tuple[bool, str]:
    try:
        response = client.post_feedback(_payload(feedback))
    except (RemoteServiceError, ServiceUnavailableError) as exc:
        logger.warning("Feedback not delivered, queueing locally: %s", exc)
        queue.enqueue(feedback)
        return False, QUEUED_MESSAGE
    message = response.get("message") if isinstance(response, dict) else None
    return True, message or SENT_MESSAGE


def sync_pending(client: BackendClient, queue: FeedbackQueue) -> int:
    """Retry queued feedback; returns how many items were delivered.

    Each item stays on disk until the backend has accepted it.
    """
    delivered = 0
    for item in queue.list_pending():
        try:
            client.post_feedback(_payload(item))
        except (RemoteServiceError, ServiceUnavailableError) as exc:
            logger.warning("Feedback sync failed, keeping item queued: %s", exc)
            continue
        queue.remove(item)
        delivered += 1
    return delivered
