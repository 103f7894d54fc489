"""
File upload exceptions
"""

from django.utils.translation import gettext_lazy as _


class FileUploadError(Exception):
    """Base exception for file upload errors"""
    pass


class AttachmentValidationError(FileUploadError):
    """
    Base class for problems found while validating a pending upload.

    Instances are collected and returned by ``AttachmentManager.validate``
    rather than raised.

    Attributes:
        field: Name of the record field the upload belongs to
        message: Human readable message
    """

    code = 'invalid'
    default_message = _('Invalid upload')

    def __init__(self, field, message=None):
        self.field = field
        self.message = message or self.default_message
        super().__init__(f"{field}: {self.message}")

    def __eq__(self, other):
        return (
            type(self) is type(other)
            and self.field == other.field
            and str(self.message) == str(other.message)
        )

    def __hash__(self):
        return hash((type(self), self.field, str(self.message)))


class InvalidExtension(AttachmentValidationError):
    """Raised when the uploaded file's extension is not in the allow-list"""

    code = 'extension'
    default_message = _('Please supply a valid file')


class UploadFailed(AttachmentValidationError):
    """Raised when the upload transport reported an error for the file"""

    code = 'upload_error'
    default_message = _('Something went wrong with the upload')


class StorageError(FileUploadError):
    """Raised when an uploaded file cannot be moved into the upload directory"""
    pass


class CleanupError(FileUploadError):
    """
    Raised when a stored file cannot be removed after its record was deleted.

    Never propagated to the caller of a delete; reported and returned instead.
    """

    def __init__(self, path, message):
        self.path = path
        super().__init__(message)
