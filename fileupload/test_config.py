"""
Tests for upload field configuration
"""

import dataclasses
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured
from django.test import TestCase, override_settings

from fileupload import config
from fileupload.checks import check_collision_policy, check_upload_fields
from fileupload.config import AttachmentFieldConfig, CollisionPolicy
from testapp.models import Gallery, Profile


class FieldConfigTestCase(TestCase):
    """Test defaults and merging of field settings."""

    def test_defaults(self):
        configs = config.build_field_configs()
        self.assertEqual(list(configs), ['image'])
        image = configs['image']
        self.assertEqual(image.allowed_extensions, frozenset({'gif', 'jpeg', 'jpg', 'png'}))
        self.assertTrue(image.required)
        self.assertEqual(image.upload_dir, 'files/')

    def test_partial_dict_takes_defaults(self):
        configs = config.build_field_configs({'avatar': {'upload_dir': 'avatars'}})
        self.assertEqual(list(configs), ['avatar'])
        self.assertEqual(configs['avatar'].upload_dir, 'avatars/')
        self.assertTrue(configs['avatar'].required)
        self.assertEqual(configs['avatar'].allowed_extensions, config.DEFAULT_ALLOWED_EXTENSIONS)

    def test_order_preserved(self):
        configs = config.build_field_configs({
            'b': {'required': False},
            'a': AttachmentFieldConfig(required=False),
        })
        self.assertEqual(list(configs), ['b', 'a'])

    def test_extensions_normalized(self):
        setting = AttachmentFieldConfig(allowed_extensions=['.PNG', 'Jpg'])
        self.assertEqual(setting.allowed_extensions, frozenset({'png', 'jpg'}))
        self.assertTrue(setting.allows('JPG'))
        self.assertFalse(setting.allows('gif'))

    @override_settings(FILEUPLOAD_DEFAULT_UPLOAD_DIR='uploads')
    def test_default_upload_dir_setting(self):
        self.assertEqual(AttachmentFieldConfig().upload_dir, 'uploads/')

    def test_invalid_upload_dir(self):
        with self.assertRaises(ImproperlyConfigured):
            AttachmentFieldConfig(upload_dir='../outside')

    def test_unknown_setting(self):
        with self.assertRaises(ImproperlyConfigured):
            config.build_field_configs({'avatar': {'extensions': ['png']}})

    def test_configuration_is_read_only(self):
        configs = config.build_field_configs()
        with self.assertRaises(TypeError):
            configs['other'] = AttachmentFieldConfig()
        with self.assertRaises(dataclasses.FrozenInstanceError):
            configs['image'].required = False


class SettingsTestCase(TestCase):

    @override_settings(FILEUPLOAD_WEB_ROOT='/srv/www')
    def test_web_root_setting(self):
        self.assertEqual(config.get_web_root(), Path('/srv/www'))

    @override_settings(FILEUPLOAD_WEB_ROOT=None, MEDIA_ROOT='/srv/media')
    def test_web_root_falls_back_to_media_root(self):
        self.assertEqual(config.get_web_root(), Path('/srv/media'))

    @override_settings(FILEUPLOAD_COLLISION_POLICY='fail')
    def test_collision_policy_setting(self):
        self.assertEqual(config.get_collision_policy(), CollisionPolicy.FAIL)

    @override_settings(FILEUPLOAD_COLLISION_POLICY='sometimes')
    def test_unknown_collision_policy(self):
        with self.assertRaises(ImproperlyConfigured):
            config.get_collision_policy()
        errors = check_collision_policy()
        self.assertEqual([error.id for error in errors], ['fileupload.E002'])


class RegistryTestCase(TestCase):

    def tearDown(self):
        config.unconfigure(Profile)
        config.unconfigure(Gallery)

    def test_configure_and_lookup(self):
        resolved = config.configure(Profile, {'avatar': {'upload_dir': 'avatars/'}})
        self.assertIs(config.get_field_configs(Profile), resolved)

    def test_configure_twice(self):
        config.configure(Profile, {'avatar': {}})
        with self.assertRaises(ImproperlyConfigured):
            config.configure(Profile, {'avatar': {}})

    def test_configured_field_must_exist(self):
        with self.assertRaises(ImproperlyConfigured):
            config.configure(Profile, {'photo': {}})
        with self.assertRaises(ImproperlyConfigured):
            config.get_field_configs(Profile)

    def test_default_field_on_model(self):
        resolved = config.configure(Gallery)
        self.assertEqual(list(resolved), ['image'])

    def test_default_field_missing_on_model(self):
        with self.assertRaises(ImproperlyConfigured):
            config.configure(Profile)

    def test_system_check(self):
        config.configure(Profile, {'avatar': {}})
        self.assertEqual(check_upload_fields(), [])

        config._registry['testapp.Gallery'] = config.build_field_configs({'photo': {}})
        errors = check_upload_fields()
        self.assertEqual([error.id for error in errors], ['fileupload.E001'])
