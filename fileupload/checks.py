"""
System checks for file upload configuration.
"""

from django.apps import apps
from django.core.checks import Error, Tags, register
from django.core.exceptions import ImproperlyConfigured

from . import config as config_service


@register(Tags.models)
def check_upload_fields(app_configs=None, **kwargs):
    """Every configured upload field must exist on its model."""
    errors = []
    for key, field_configs in config_service.configured_models():
        if isinstance(key, str):
            try:
                model = apps.get_model(key)
            except LookupError:
                continue
        else:
            model = key

        try:
            config_service.check_fields_exist(model, field_configs)
        except ImproperlyConfigured as e:
            errors.append(Error(str(e), obj=key, id='fileupload.E001'))
    return errors


@register()
def check_collision_policy(app_configs=None, **kwargs):
    try:
        config_service.get_collision_policy()
    except ImproperlyConfigured as e:
        return [Error(
            str(e),
            hint="Use 'overwrite' or 'fail'.",
            id='fileupload.E002',
        )]
    return []
