"""
Django signals wiring the Attachment Manager into model saves and deletes.

    from fileupload.signals import register

    register(Profile, {
        'avatar': {'allowed_extensions': {'png', 'jpg'}, 'upload_dir': 'avatars/'},
    })

On pre_save the pending uploads are validated and committed; a rejected
upload aborts the save with a ValidationError. On pre_delete the stored
paths are captured and their removal is scheduled with
transaction.on_commit(), so files only disappear once the row is gone.
"""

import logging
from functools import partial
from typing import Dict, Mapping, Optional

from django.core.exceptions import ImproperlyConfigured, ValidationError
from django.db import transaction
from django.db.models.signals import pre_delete, pre_save

from . import config as config_service
from .config import FieldConfigInput
from .manager import AttachmentManager

logger = logging.getLogger(__name__)

_managers: Dict[str, AttachmentManager] = {}


def _uid(model, signal_name: str) -> str:
    return f"fileupload:{model._meta.label}:{signal_name}"


def get_manager(model) -> AttachmentManager:
    """
    Get the manager registered for a model.

    Raises:
        ImproperlyConfigured: If the model is not registered
    """
    try:
        return _managers[model._meta.label]
    except KeyError:
        raise ImproperlyConfigured(f"{model._meta.label} is not registered for file uploads")


def handle_pre_save(sender, instance, raw=False, **kwargs):
    """Validate and store pending uploads before the row is written."""
    if raw:
        # Fixture loading stores field values as they are
        return

    manager = get_manager(sender)
    errors = manager.validate(instance)
    if errors:
        messages = {}
        for error in errors:
            messages.setdefault(error.field, []).append(
                ValidationError(error.message, code=error.code)
            )
        raise ValidationError(messages)

    manager.commit(instance)


def handle_pre_delete(sender, instance, using=None, **kwargs):
    """
    Capture stored paths and remove the files once the delete commits.

    Paths come from the row as stored, not from unsaved changes on the instance.
    """
    manager = get_manager(sender)
    stored = None
    if instance.pk is not None:
        stored = (
            sender._default_manager.using(using)
            .filter(pk=instance.pk)
            .values(*manager.field_configs)
            .first()
        )
    captured = manager.capture_for_deletion(instance, stored_values=stored)
    if not captured:
        return

    transaction.on_commit(partial(manager.finalize_deletion, captured), using=using)


def register(
    model,
    field_configs: Optional[Mapping[str, FieldConfigInput]] = None,
    **manager_options,
) -> AttachmentManager:
    """
    Enable file uploads for a model.

    Args:
        model: Django model class
        field_configs: Field name to settings, merged with the defaults
        **manager_options: Passed to AttachmentManager (web_root,
            filename_generator, collision_policy, on_cleanup_error)

    Returns:
        The manager handling the model

    Raises:
        ImproperlyConfigured: If the model is already registered or a field is missing
    """
    resolved = config_service.configure(model, field_configs)
    manager = AttachmentManager(resolved, **manager_options)
    _managers[model._meta.label] = manager

    pre_save.connect(handle_pre_save, sender=model, dispatch_uid=_uid(model, 'pre_save'))
    pre_delete.connect(handle_pre_delete, sender=model, dispatch_uid=_uid(model, 'pre_delete'))

    logger.debug(f"Registered file uploads for {model._meta.label}: {', '.join(resolved)}")
    return manager


def unregister(model) -> None:
    """Disconnect a model registered with register()."""
    pre_save.disconnect(sender=model, dispatch_uid=_uid(model, 'pre_save'))
    pre_delete.disconnect(sender=model, dispatch_uid=_uid(model, 'pre_delete'))
    _managers.pop(model._meta.label, None)
    config_service.unconfigure(model)
