"""In-memory record store with association wiring."""

from .db import RecordStore
from .record import Record
from .associations import AssociationResolver, AssociationWrite
from .integrity import IntegrityIssue, check_integrity

__all__ = [
    "RecordStore",
    "Record",
    "AssociationResolver",
    "AssociationWrite",
    "IntegrityIssue",
    "check_integrity",
]
