"""Warehouse management domain: document storage, entity services and workflows."""

from .errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    StoreConfigurationError,
    ValidationError,
    WMSError,
    WorkflowError,
)
from .models import Document, db
from .records import BulkOperationResult
from .services import Services
from .storage import FirestoreDocumentStore, SqlDocumentStore, create_store

__all__ = [
    'BulkOperationResult',
    'ConflictError',
    'Document',
    'FirestoreDocumentStore',
    'NotFoundError',
    'PermissionDeniedError',
    'Services',
    'SqlDocumentStore',
    'StoreConfigurationError',
    'ValidationError',
    'WMSError',
    'WorkflowError',
    'create_store',
    'db',
]
