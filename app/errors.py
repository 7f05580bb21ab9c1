class ReminderServiceError(Exception):
    """Base class for errors raised by the reminder service."""


class ConnectivityError(ReminderServiceError):
    """The activity source could not be reached; tracking cannot start."""


class TransientFetchError(ReminderServiceError):
    """A single activity poll failed. Tracking continues."""


class AnalysisProviderError(ReminderServiceError):
    """The text-generation provider failed or returned unusable text."""


class DuplicateReminderError(ReminderServiceError):
    """A reminder with the same id is already stored."""
