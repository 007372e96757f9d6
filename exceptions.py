"""
Error taxonomy for MedTrack
"""

from typing import Optional


class MedTrackError(Exception):
    """Base class for all domain errors"""


class ValidationError(MedTrackError):
    """Malformed input rejected before any state is touched"""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}" if field else message)


class NotFoundError(MedTrackError):
    """Unknown medicine, target or reminder key"""


class StoreUnavailable(MedTrackError):
    """Document store read or write failed; retry the whole read-modify-write"""


class StaleTransition(MedTrackError):
    """Action arrived for a reminder no longer in the expected state"""


class PermissionDenied(MedTrackError):
    """Caller is not allowed to perform the action"""
