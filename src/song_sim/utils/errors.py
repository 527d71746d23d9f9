from __future__ import annotations


class SongSimError(Exception):
    """Base class for simulation errors."""


class UserIntentError(SongSimError):
    """A player intent failed a precondition. Nothing was mutated."""


class SnapshotFormatError(SongSimError):
    """A persisted snapshot could not be decoded."""


class DataIntegrityWarning(UserWarning):
    """A snapshot referenced verse ids the catalog did not know at load time."""
