import threading
from typing import Optional

from docmigrate.errors import AssessmentCancelled


class CancellationToken:
    """
    Cooperative cancellation signal shared by every pipeline stage.

    Wraps a threading.Event so callers can hand in their own event
    (e.g. one set from a signal handler).
    """

    def __init__(self, event: Optional[threading.Event] = None):
        self._event = event or threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """
        Raise AssessmentCancelled if the signal has been set.

        Raises:
            AssessmentCancelled: when cancel() was called
        """
        if self._event.is_set():
            raise AssessmentCancelled()
