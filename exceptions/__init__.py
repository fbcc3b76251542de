"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # Lookups
    ProjectNotFoundError,
    SnapshotNotFoundError,

    # Parsers
    CSVParseError,
    ModuleFileParseError,
    MissingSerialNumberError,
    HeaderAliasCollisionError,

    # Sequences
    InvalidSequenceEditError,
    SequenceConflictError,
    ConcurrentModificationError,

    # Storage
    StorageUnavailableError,
    RemoteExecutionError,
    SnapshotPersistenceError,
    ImportBatchError,
    InvalidStoredModuleError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # Lookups
    "ProjectNotFoundError",
    "SnapshotNotFoundError",

    # Parsers
    "CSVParseError",
    "ModuleFileParseError",
    "MissingSerialNumberError",
    "HeaderAliasCollisionError",

    # Sequences
    "InvalidSequenceEditError",
    "SequenceConflictError",
    "ConcurrentModificationError",

    # Storage
    "StorageUnavailableError",
    "RemoteExecutionError",
    "SnapshotPersistenceError",
    "ImportBatchError",
    "InvalidStoredModuleError",
]
