"""
Error taxonomy for the sync pipeline.

Unit-level errors (NotFoundError, TransientStoreError, StoreError,
ValidationError) end up as a Failed outcome for one record. RelationMissingError
is informational. RunLevelError aborts a whole run.
"""

from typing import Optional


class CoreSyncError(Exception):
    """Base class for every error raised by the sync engine."""


class NotFoundError(CoreSyncError):
    """The source record for a requested id does not exist."""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class RelationMissingError(CoreSyncError):
    """A related source record is absent. Recorded, never fatal."""

    def __init__(self, entity_type: str, entity_id: str, relation: str, related_id: Optional[str] = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.relation = relation
        self.related_id = related_id
        detail = f" ({related_id})" if related_id else ""
        super().__init__(f"{entity_type} {entity_id}: missing {relation}{detail}")


class StoreError(CoreSyncError):
    """A read or write against the cleaned or core store failed."""


class TransientStoreError(StoreError):
    """A store failure worth retrying (lost connection, lock timeout...)."""


class VersionConflictError(TransientStoreError):
    """Optimistic compare-and-swap on data_version lost against another writer."""

    def __init__(self, entity_type: str, entity_id: str, expected_version: Optional[int]):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"{entity_type} {entity_id}: data_version changed (expected {expected_version})"
        )


class ValidationError(CoreSyncError):
    """A statistic input is malformed (negative count, NaN score...)."""


class RunLevelError(CoreSyncError):
    """Enumeration or audit persistence failed; the run cannot continue."""


class RunStateError(CoreSyncError):
    """Illegal SyncRun status transition."""
