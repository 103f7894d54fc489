"""
Configuration for file upload fields.

This module provides:
- AttachmentFieldConfig, the per-field rules
- The built-in defaults and merging of user-supplied settings over them
- Process-wide settings read from django.conf.settings
- A registry holding the resolved configuration of each record type

Configuration is resolved once, when a record type is registered, and is
read-only afterwards.
"""

from dataclasses import dataclass, field as dataclass_field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Union

from django.conf import settings
from django.core.exceptions import FieldDoesNotExist, ImproperlyConfigured
from django.db import models
from django.utils.translation import gettext_lazy as _

from .paths import normalize_upload_dir


DEFAULT_FIELD = 'image'
DEFAULT_ALLOWED_EXTENSIONS = frozenset({'gif', 'jpeg', 'jpg', 'png'})
DEFAULT_UPLOAD_DIR = 'files/'


class CollisionPolicy(models.TextChoices):
    OVERWRITE = 'overwrite', _('Overwrite existing file')
    FAIL = 'fail', _('Fail if the file exists')


@dataclass(frozen=True)
class AttachmentFieldConfig:
    """
    Rules for a single upload field.

    Attributes:
        allowed_extensions: Lower-cased extensions accepted for the field
        required: Whether the record needs a valid upload to validate
        upload_dir: Directory relative to the web root, ending with '/'
    """

    allowed_extensions: FrozenSet[str] = DEFAULT_ALLOWED_EXTENSIONS
    required: bool = True
    upload_dir: str = dataclass_field(default_factory=lambda: get_default_upload_dir())

    def __post_init__(self):
        extensions = frozenset(ext.lower().lstrip('.') for ext in self.allowed_extensions)
        object.__setattr__(self, 'allowed_extensions', extensions)
        try:
            object.__setattr__(self, 'upload_dir', normalize_upload_dir(self.upload_dir))
        except ValueError as e:
            raise ImproperlyConfigured(str(e)) from e

    def allows(self, extension: str) -> bool:
        return extension.lower() in self.allowed_extensions


FieldConfigInput = Union[AttachmentFieldConfig, Mapping[str, Any]]


def get_default_upload_dir() -> str:
    return getattr(settings, 'FILEUPLOAD_DEFAULT_UPLOAD_DIR', DEFAULT_UPLOAD_DIR)


def get_web_root() -> Path:
    """
    Get the directory stored paths are relative to.

    Uses FILEUPLOAD_WEB_ROOT, then MEDIA_ROOT, then BASE_DIR / 'webroot'.
    """
    web_root = getattr(settings, 'FILEUPLOAD_WEB_ROOT', None) or getattr(settings, 'MEDIA_ROOT', None)
    if not web_root:
        web_root = Path(getattr(settings, 'BASE_DIR', '.')) / 'webroot'
    return Path(web_root)


def get_collision_policy() -> CollisionPolicy:
    value = getattr(settings, 'FILEUPLOAD_COLLISION_POLICY', CollisionPolicy.OVERWRITE)
    try:
        return CollisionPolicy(value)
    except ValueError:
        raise ImproperlyConfigured(f"Unknown FILEUPLOAD_COLLISION_POLICY: {value!r}")


def make_field_config(value: FieldConfigInput) -> AttachmentFieldConfig:
    """
    Coerce a user-supplied field setting into an AttachmentFieldConfig.

    Dicts may omit keys; omitted keys take the built-in defaults.
    """
    if isinstance(value, AttachmentFieldConfig):
        return value
    if not isinstance(value, Mapping):
        raise ImproperlyConfigured(f"Invalid upload field settings: {value!r}")

    unknown = set(value) - {'allowed_extensions', 'required', 'upload_dir'}
    if unknown:
        raise ImproperlyConfigured(f"Unknown upload field settings: {', '.join(sorted(unknown))}")
    return AttachmentFieldConfig(**value)


def build_field_configs(
    field_configs: Optional[Mapping[str, FieldConfigInput]] = None
) -> Mapping[str, AttachmentFieldConfig]:
    """
    Merge user settings with the built-in defaults.

    Without settings the default ``image`` field is configured. Each
    supplied field takes the default values for the keys it omits.

    Returns:
        Read-only mapping of field name to config, in the given order
    """
    if not field_configs:
        return MappingProxyType({DEFAULT_FIELD: AttachmentFieldConfig()})

    resolved: Dict[str, AttachmentFieldConfig] = {}
    for name, value in field_configs.items():
        resolved[name] = make_field_config(value)
    return MappingProxyType(resolved)


def check_fields_exist(model, field_configs: Mapping[str, AttachmentFieldConfig]) -> None:
    """
    Ensure every configured field is an actual field of the model.

    Raises:
        ImproperlyConfigured: If a configured field is missing
    """
    meta = getattr(model, '_meta', None)
    for name in field_configs:
        if meta is not None:
            try:
                meta.get_field(name)
            except FieldDoesNotExist:
                raise ImproperlyConfigured(
                    f"{meta.label} has no field named '{name}' for file uploads"
                )
        elif not hasattr(model, name):
            raise ImproperlyConfigured(
                f"{model.__name__} has no field named '{name}' for file uploads"
            )


# Registry of record type -> field configs
_registry: Dict[Any, Mapping[str, AttachmentFieldConfig]] = {}


def _registry_key(model):
    meta = getattr(model, '_meta', None)
    return meta.label if meta is not None else model


def configure(model, field_configs: Optional[Mapping[str, FieldConfigInput]] = None) -> Mapping[str, AttachmentFieldConfig]:
    """
    Resolve and store the upload configuration of a record type.

    Args:
        model: Model class (or any class exposing the configured attributes)
        field_configs: Mapping of field name to settings

    Returns:
        The resolved, read-only field configuration

    Raises:
        ImproperlyConfigured: If the model is already configured or a field is missing
    """
    key = _registry_key(model)
    if key in _registry:
        raise ImproperlyConfigured(f"File uploads are already configured for {key}")

    resolved = build_field_configs(field_configs)
    check_fields_exist(model, resolved)
    _registry[key] = resolved
    return resolved


def get_field_configs(model) -> Mapping[str, AttachmentFieldConfig]:
    """
    Get the resolved configuration of a record type.

    Raises:
        ImproperlyConfigured: If the record type was never configured
    """
    try:
        return _registry[_registry_key(model)]
    except KeyError:
        raise ImproperlyConfigured(f"File uploads are not configured for {_registry_key(model)}")


def unconfigure(model) -> None:
    _registry.pop(_registry_key(model), None)


def configured_models():
    return list(_registry.items())
