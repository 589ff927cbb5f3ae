"""
Significant-change filter for rider position uploads.

A sample is worth uploading when no position has been reported yet this
session, or when it lies more than ``threshold_m`` metres from the last
reported one.  The filter is stateful: a positive decision moves the
reference point, a negative one leaves it untouched.  Callers that fail to
deliver a position after a positive decision must ``rollback()`` so the
reference keeps matching what the backend actually holds.
"""

from __future__ import annotations

from typing import Optional

from .distance import metres_between
from .entities import Location


class SignificantChangeFilter:
    def __init__(self, threshold_m: float = 10.0):
        self.threshold_m = threshold_m
        self.last_reported: Optional[Location] = None
        self._previous: Optional[Location] = None

    def should_report(self, location: Location) -> bool:
        if self.last_reported is not None:
            moved_m = metres_between(self.last_reported, location)
            if moved_m <= self.threshold_m:
                return False
        self._previous = self.last_reported
        self.last_reported = location
        return True

    def rollback(self) -> None:
        """Undo the most recent positive decision."""
        self.last_reported = self._previous
        self._previous = None

    def reset(self) -> None:
        self.last_reported = None
        self._previous = None
