"""
Default filename generation

A filename generator receives the record's current field values and the
name of the field being stored, and returns a filename. It must be
deterministic: the same values and field always produce the same name.
"""

import hashlib
import mimetypes
from typing import Any, Callable, Mapping

from .uploads import PendingUpload, as_pending_upload

FilenameGenerator = Callable[[Mapping[str, Any], str], str]

# Length of the hex digest kept in generated names
DIGEST_LENGTH = 16


def upload_extension(upload: PendingUpload) -> str:
    """
    Extension for a stored upload, taken from the original name.

    Falls back to the MIME type when the original name has no extension.
    """
    if upload.extension:
        return upload.extension
    if upload.content_type:
        guessed = mimetypes.guess_extension(upload.content_type)
        if guessed:
            return guessed.lstrip('.')
    return ''


def default_filename_generator(values: Mapping[str, Any], field: str) -> str:
    """
    Hash the record identity and field name, keeping the original extension.

    The primary key is used when the record has one; unsaved records are
    identified by their remaining (non-upload) field values.
    """
    pk = values.get('pk')
    if pk is None:
        pk = values.get('id')

    if pk is not None:
        identity = f"pk={pk}"
    else:
        identity = ';'.join(
            f"{key}={value!r}"
            for key, value in sorted(values.items())
            if as_pending_upload(value, spool=False) is None
        )

    digest = hashlib.sha1(f"{identity}|{field}".encode('utf-8')).hexdigest()[:DIGEST_LENGTH]
    name = f"{pk}-{field}-{digest}" if pk is not None else f"{field}-{digest}"

    upload = as_pending_upload(values.get(field), spool=False)
    extension = upload_extension(upload) if upload else ''
    return f"{name}.{extension}" if extension else name
