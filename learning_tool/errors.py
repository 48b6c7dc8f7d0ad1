"""Error types for the learning tool."""
from __future__ import annotations


class LearningError(Exception):
    """Base class for learning pipeline failures."""


class StorageError(LearningError):
    """The state directory could not be written."""


class NotFoundError(LearningError, ValueError):
    """An unknown checkpoint or pattern id was requested."""


class MalformedRecordError(LearningError, ValueError):
    """A stored line or document could not be parsed into a record.

    Read paths catch this and skip the record.
    """
