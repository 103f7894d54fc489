"""
File uploads for Django models

Moves uploaded files into a directory below the web root, stores their
relative path in a model field and removes them when the record is deleted.
"""

from .config import AttachmentFieldConfig, CollisionPolicy
from .errors import (
    FileUploadError,
    AttachmentValidationError,
    InvalidExtension,
    UploadFailed,
    StorageError,
    CleanupError,
)
from .manager import AttachmentManager
from .uploads import PendingUpload, UploadError

__all__ = [
    'AttachmentManager',
    'AttachmentFieldConfig',
    'CollisionPolicy',
    'PendingUpload',
    'UploadError',
    'FileUploadError',
    'AttachmentValidationError',
    'InvalidExtension',
    'UploadFailed',
    'StorageError',
    'CleanupError',
]
