"""
Pending uploads

A PendingUpload describes a file the HTTP layer has already received into a
local temporary path. It only lives for the duration of a single save.
"""

import os
import tempfile
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from django.core.files.uploadedfile import UploadedFile
from django.db import models
from django.utils.translation import gettext_lazy as _

from .paths import get_extension


class UploadError(models.IntegerChoices):
    OK = 0, _('No error')
    INI_SIZE = 1, _('File exceeds the server size limit')
    FORM_SIZE = 2, _('File exceeds the form size limit')
    PARTIAL = 3, _('File was only partially uploaded')
    NO_FILE = 4, _('No file was uploaded')
    NO_TMP_DIR = 6, _('Missing temporary folder')
    CANT_WRITE = 7, _('Failed to write file to disk')
    EXTENSION = 8, _('Upload stopped by an extension')
    UNKNOWN = -1, _('Unknown upload error')

    @classmethod
    def from_code(cls, code) -> 'UploadError':
        """Map a transport error code, treating codes we do not know as UNKNOWN."""
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            return cls.UNKNOWN


@dataclass(frozen=True)
class PendingUpload:
    """
    Transient descriptor for an incoming file.
    """

    temporary_path: str
    original_name: str
    size: int = 0
    upload_error: UploadError = UploadError.OK
    content_type: str = ''
    # Set for in-memory uploads described without writing them to disk
    in_memory: bool = False

    @property
    def is_empty(self) -> bool:
        """True when no file actually arrived."""
        return not self.temporary_path and not self.in_memory

    @property
    def extension(self) -> str:
        """Lower-cased extension of the original name, without the dot."""
        return get_extension(self.original_name)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'PendingUpload':
        """
        Build from a multipart-style mapping.

        Accepts the keys ``tmp_name``, ``name``, ``size``, ``error`` and
        ``type`` as produced by common multipart parsers.
        """
        error = data.get('error') or UploadError.OK
        return cls(
            temporary_path=data.get('tmp_name') or '',
            original_name=data.get('name') or '',
            size=int(data.get('size') or 0),
            upload_error=UploadError.from_code(error),
            content_type=data.get('type') or '',
        )

    @classmethod
    def from_uploaded_file(cls, file: UploadedFile, spool: bool = True) -> 'PendingUpload':
        """
        Build from a Django UploadedFile.

        TemporaryUploadedFile already lives on disk; in-memory uploads are
        spooled to a temporary file first so they can be moved like any other.
        With ``spool=False`` an in-memory upload is only described, nothing
        is written.
        """
        if not is_in_memory(file):
            temporary_path = file.temporary_file_path()
        elif not spool:
            return cls(
                temporary_path='',
                original_name=file.name or '',
                size=file.size or 0,
                content_type=getattr(file, 'content_type', None) or '',
                in_memory=True,
            )
        else:
            suffix = os.path.splitext(file.name or '')[1]
            with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as dest:
                for chunk in file.chunks():
                    dest.write(chunk)
                temporary_path = dest.name

        return cls(
            temporary_path=temporary_path,
            original_name=file.name or '',
            size=file.size or 0,
            content_type=getattr(file, 'content_type', None) or '',
        )


def is_in_memory(value: Any) -> bool:
    """True for an UploadedFile that has no file on disk yet."""
    return isinstance(value, UploadedFile) and not hasattr(value, 'temporary_file_path')


def as_pending_upload(value: Any, spool: bool = True) -> Optional[PendingUpload]:
    """
    Return the PendingUpload carried by a field value, or None.

    Stored path strings and empty values are not uploads. In-memory uploads
    are written to a temporary file unless ``spool`` is False.
    """
    if isinstance(value, PendingUpload):
        return value
    if isinstance(value, UploadedFile):
        return PendingUpload.from_uploaded_file(value, spool=spool)
    if isinstance(value, Mapping) and 'tmp_name' in value:
        return PendingUpload.from_dict(value)
    return None
