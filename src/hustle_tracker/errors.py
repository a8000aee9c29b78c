"""Exception types raised by the tracker."""

from __future__ import annotations


class HustleTrackerError(Exception):
    """Base class for tracker errors."""


class InspectionError(HustleTrackerError):
    """The focused window could not be determined."""


class StoreError(HustleTrackerError):
    """A session store operation failed."""


class ConfigurationError(HustleTrackerError):
    """Settings are missing or inconsistent."""
