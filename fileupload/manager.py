"""
Attachment Manager

Validates, stores and cleans up files uploaded for a record's fields.

The manager exposes the stages a save/delete pipeline calls in order:

    errors = manager.validate(record)      # before saving, no side effects
    manager.commit(record)                 # moves files, rewrites fields
    captured = manager.capture_for_deletion(record)   # before the row is removed
    manager.finalize_deletion(captured)    # after the row is removed
"""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from django.utils.translation import gettext_lazy as _

from . import config as config_service
from .config import CollisionPolicy, FieldConfigInput
from .errors import (
    AttachmentValidationError,
    CleanupError,
    InvalidExtension,
    StorageError,
    UploadFailed,
)
from .filenames import FilenameGenerator, default_filename_generator
from .paths import build_destination, get_absolute_path, resolve_stored_path
from .uploads import PendingUpload, UploadError, as_pending_upload, is_in_memory

logger = logging.getLogger(__name__)


@dataclass
class _PlannedMove:
    field: str
    source: Path
    destination: str
    target: Path
    backup: Optional[Path] = None


class AttachmentManager:
    """
    Service for moving uploaded files into place and removing them again.

    One manager is built per record type. Its configuration is resolved at
    construction and never changes afterwards, so a manager can be shared
    between requests.
    """

    def __init__(
        self,
        field_configs: Optional[Mapping[str, FieldConfigInput]] = None,
        web_root: Optional[Union[str, Path]] = None,
        filename_generator: Optional[FilenameGenerator] = None,
        collision_policy: Optional[Union[CollisionPolicy, str]] = None,
        on_cleanup_error: Optional[Callable[[CleanupError], Any]] = None,
    ):
        """
        Initialize the manager.

        Args:
            field_configs: Field name to settings (defaults to the ``image`` field)
            web_root: Directory stored paths are relative to (defaults to FILEUPLOAD_WEB_ROOT)
            filename_generator: Callable ``(values, field) -> filename``; when omitted the
                record's ``generate_filename`` method is used, then the default generator
            collision_policy: What to do when the destination file already exists
                (defaults to FILEUPLOAD_COLLISION_POLICY)
            on_cleanup_error: Called with each CleanupError raised while removing files
        """
        self.field_configs = config_service.build_field_configs(field_configs)
        self.web_root = Path(web_root) if web_root else config_service.get_web_root()
        self.filename_generator = filename_generator
        self.collision_policy = (
            CollisionPolicy(collision_policy) if collision_policy
            else config_service.get_collision_policy()
        )
        self.on_cleanup_error = on_cleanup_error

    @classmethod
    def for_model(cls, model, **kwargs) -> 'AttachmentManager':
        """Build a manager from the registered configuration of a model."""
        return cls(config_service.get_field_configs(model), **kwargs)

    def _field_values(self, record) -> Tuple[Dict[str, Any], List[Path]]:
        """
        Snapshot the record's field values, with uploads as PendingUpload.

        Returns:
            The values, and the temporary files written for in-memory uploads
        """
        meta = getattr(record, '_meta', None)
        if meta is not None:
            values = {f.attname: getattr(record, f.attname) for f in meta.concrete_fields}
            values['pk'] = record.pk
        else:
            values = dict(vars(record))
            values.setdefault('pk', getattr(record, 'pk', values.get('id')))

        spooled: List[Path] = []
        for name in self.field_configs:
            value = getattr(record, name, None)
            upload = as_pending_upload(value)
            if upload is None:
                continue
            if is_in_memory(value):
                spooled.append(Path(upload.temporary_path))
            values[name] = upload
        return values, spooled

    def _generate_filename(self, record, values: Mapping[str, Any], field: str) -> str:
        generator = self.filename_generator or getattr(record, 'generate_filename', None)
        if generator is None:
            generator = default_filename_generator
        return generator(values, field)

    def _clear_field(self, record, field: str) -> None:
        meta = getattr(record, '_meta', None)
        empty = None
        if meta is not None and not meta.get_field(field).null:
            empty = ''
        setattr(record, field, empty)

    def validate(self, record) -> List[AttachmentValidationError]:
        """
        Check pending uploads against the field rules.

        Does not modify the record and writes nothing to disk.

        Returns:
            List of InvalidExtension / UploadFailed errors, empty if the record may be committed
        """
        errors: List[AttachmentValidationError] = []

        for name, setting in self.field_configs.items():
            if not setting.required:
                continue

            upload = as_pending_upload(getattr(record, name, None), spool=False)
            if upload is None:
                continue

            if not upload.is_empty and not setting.allows(upload.extension):
                errors.append(InvalidExtension(name))

            upload_error = upload.upload_error
            if upload_error == UploadError.OK and upload.is_empty:
                upload_error = UploadError.NO_FILE
            if upload_error != UploadError.OK:
                errors.append(UploadFailed(name))

        if errors:
            logger.info(
                f"Rejected uploads for {record.__class__.__name__}: "
                f"{', '.join(str(error) for error in errors)}"
            )
        return errors

    def _plan(self, record, values: Mapping[str, Any]) -> tuple:
        moves: List[_PlannedMove] = []
        cleared: List[str] = []

        for name, setting in self.field_configs.items():
            value = getattr(record, name, None)
            upload = values[name] if isinstance(values.get(name), PendingUpload) else None

            if upload is not None and not upload.is_empty:
                filename = self._generate_filename(record, values, name)
                destination = build_destination(setting.upload_dir, filename)
                moves.append(_PlannedMove(
                    field=name,
                    source=Path(upload.temporary_path),
                    destination=destination,
                    target=get_absolute_path(self.web_root, destination),
                ))
            elif (upload is not None or not value) and not setting.required:
                cleared.append(name)
            elif upload is not None:
                raise StorageError(_('No file was uploaded for %(field)s') % {'field': name})

        return moves, cleared

    def _preflight(self, moves: Iterable[_PlannedMove]) -> None:
        """
        Make sure every planned move can be attempted before touching any file.
        """
        targets = set()
        for move in moves:
            if not move.source.is_file():
                raise StorageError(f"Uploaded file for '{move.field}' is missing: {move.source}")

            if move.target in targets:
                raise StorageError(f"Two fields would be stored at {move.destination}")
            targets.add(move.target)

            if move.target.exists():
                if self.collision_policy == CollisionPolicy.FAIL:
                    raise StorageError(f"File already exists: {move.destination}")
                logger.warning(f"Overwriting existing file {move.target}")

            try:
                move.target.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError(f"Cannot create upload directory {move.target.parent}: {e}") from e

    def _set_aside(self, move: _PlannedMove) -> None:
        """Keep the file being overwritten until the whole commit succeeds."""
        if not move.target.exists():
            return
        fd, backup = tempfile.mkstemp(prefix=f".{move.target.name}.", suffix='.bak', dir=move.target.parent)
        os.close(fd)
        try:
            os.replace(move.target, backup)
        except OSError:
            os.remove(backup)
            raise
        move.backup = Path(backup)

    def _restore_backup(self, move: _PlannedMove) -> None:
        if move.backup is None:
            return
        try:
            os.replace(move.backup, move.target)
        except OSError as e:
            logger.error(f"Failed to restore {move.target} from {move.backup}: {e}", exc_info=True)

    def _rollback(self, moved: Iterable[_PlannedMove]) -> None:
        for move in reversed(list(moved)):
            try:
                shutil.move(str(move.target), str(move.source))
            except OSError as e:
                logger.error(f"Failed to restore {move.source} from {move.target}: {e}", exc_info=True)
            self._restore_backup(move)

    def _discard(self, paths: Iterable[Path]) -> None:
        for path in paths:
            try:
                os.remove(path)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Could not remove temporary file {path}: {e}")

    def _move_all(self, moves: List[_PlannedMove]) -> None:
        moved: List[_PlannedMove] = []
        for move in moves:
            try:
                self._set_aside(move)
                shutil.move(str(move.source), str(move.target))
            except OSError as e:
                logger.error(f"Failed to move {move.source} to {move.target}: {e}", exc_info=True)
                self._restore_backup(move)
                self._rollback(moved)
                raise StorageError(_('move failed')) from e
            moved.append(move)

        self._discard(move.backup for move in moves if move.backup is not None)

    def commit(self, record):
        """
        Move accepted uploads into their upload directories.

        Fields holding a fresh upload are rewritten to the stored relative path;
        optional fields left empty are cleared; anything else is left alone.
        Either all files are moved or none are and the record is unchanged.
        Files replaced under the overwrite policy are kept aside until every
        move has succeeded.

        Args:
            record: Record whose fields carry the uploads

        Returns:
            The record

        Raises:
            StorageError: If any file cannot be moved
        """
        values, spooled = self._field_values(record)
        try:
            moves, cleared = self._plan(record, values)
            self._preflight(moves)
            self._move_all(moves)
        except StorageError:
            self._discard(spooled)
            raise

        for move in moves:
            setattr(record, move.field, move.destination)
            logger.info(f"Stored upload for {record.__class__.__name__}.{move.field} at {move.destination}")
        for name in cleared:
            self._clear_field(record, name)

        return record

    def capture_for_deletion(self, record, stored_values: Optional[Mapping[str, Any]] = None) -> Dict[str, Path]:
        """
        Collect the absolute paths of the files referenced by a record.

        Must be called before the record's row is removed, while its field
        values are still readable.

        Args:
            record: Record about to be deleted
            stored_values: Field values as persisted (e.g. read back from the
                database); the record's attributes are used when omitted

        Returns:
            Mapping of field name to absolute path
        """
        captured: Dict[str, Path] = {}
        for name, setting in self.field_configs.items():
            if stored_values is not None:
                value = stored_values.get(name)
            else:
                value = getattr(record, name, None)
            if not value or not isinstance(value, str):
                continue
            try:
                captured[name] = resolve_stored_path(self.web_root, setting.upload_dir, value)
            except StorageError as e:
                logger.warning(f"Not removing {record.__class__.__name__}.{name}: {e}")
        return captured

    def finalize_deletion(self, captured: Union[Mapping[str, Union[str, Path]], Iterable[Union[str, Path]]]) -> List[CleanupError]:
        """
        Remove captured files. Missing files are ignored.

        Failures are logged and reported, never raised: the record is already gone.

        Returns:
            List of CleanupError, empty if every file was removed
        """
        paths = captured.values() if isinstance(captured, Mapping) else captured
        errors: List[CleanupError] = []

        for path in paths:
            try:
                os.remove(path)
            except FileNotFoundError:
                continue
            except OSError as e:
                error = CleanupError(path, f"Failed to remove {path}: {e}")
                logger.error(str(error), exc_info=True)
                errors.append(error)
                if self.on_cleanup_error is not None:
                    self.on_cleanup_error(error)
                continue
            logger.info(f"Removed stored file {path}")

        return errors
