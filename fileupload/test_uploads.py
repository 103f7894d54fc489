"""
Tests for pending upload descriptors
"""

import os
from unittest.mock import Mock, patch

from django.core.files.uploadedfile import SimpleUploadedFile, TemporaryUploadedFile
from django.test import TestCase

from fileupload import AttachmentManager
from fileupload.errors import UploadFailed
from fileupload.uploads import PendingUpload, UploadError, as_pending_upload


class PendingUploadTestCase(TestCase):

    def test_from_dict(self):
        upload = PendingUpload.from_dict({
            'tmp_name': '/tmp/xyz',
            'name': 'me.png',
            'size': '1024',
            'error': 0,
            'type': 'image/png',
        })
        self.assertEqual(upload.temporary_path, '/tmp/xyz')
        self.assertEqual(upload.original_name, 'me.png')
        self.assertEqual(upload.size, 1024)
        self.assertEqual(upload.upload_error, UploadError.OK)
        self.assertEqual(upload.extension, 'png')
        self.assertFalse(upload.is_empty)

    def test_from_dict_without_file(self):
        upload = PendingUpload.from_dict({'tmp_name': '', 'name': '', 'size': 0, 'error': 4})
        self.assertTrue(upload.is_empty)
        self.assertEqual(upload.upload_error, UploadError.NO_FILE)

    def test_from_dict_unknown_error_code(self):
        for code in (99, 'x'):
            upload = PendingUpload.from_dict({'tmp_name': '/tmp/xyz', 'name': 'me.png', 'error': code})
            self.assertEqual(upload.upload_error, UploadError.UNKNOWN)

    def test_unknown_error_code_rejected(self):
        manager = AttachmentManager({'avatar': {'allowed_extensions': {'png'}}}, web_root='/srv/www')
        record = Mock(avatar={'tmp_name': '/tmp/xyz', 'name': 'me.png', 'error': 99})
        self.assertEqual(manager.validate(record), [UploadFailed('avatar')])

    def test_in_memory_uploaded_file_without_spooling(self):
        file = SimpleUploadedFile('me.png', b'png bytes', content_type='image/png')
        with patch('tempfile.NamedTemporaryFile') as named_temporary_file:
            upload = PendingUpload.from_uploaded_file(file, spool=False)

        named_temporary_file.assert_not_called()
        self.assertTrue(upload.in_memory)
        self.assertFalse(upload.is_empty)
        self.assertEqual(upload.temporary_path, '')
        self.assertEqual(upload.extension, 'png')

    def test_from_in_memory_uploaded_file(self):
        file = SimpleUploadedFile('me.png', b'png bytes', content_type='image/png')
        upload = PendingUpload.from_uploaded_file(file)
        try:
            self.assertEqual(upload.original_name, 'me.png')
            self.assertEqual(upload.size, len(b'png bytes'))
            self.assertEqual(upload.content_type, 'image/png')
            with open(upload.temporary_path, 'rb') as f:
                self.assertEqual(f.read(), b'png bytes')
        finally:
            os.remove(upload.temporary_path)

    def test_from_temporary_uploaded_file(self):
        file = TemporaryUploadedFile('me.jpg', 'image/jpeg', 3, 'utf-8')
        try:
            file.write(b'jpg')
            file.flush()
            upload = PendingUpload.from_uploaded_file(file)
            self.assertEqual(upload.temporary_path, file.temporary_file_path())
            self.assertEqual(upload.extension, 'jpg')
        finally:
            file.close()


class AsPendingUploadTestCase(TestCase):

    def test_stored_paths_are_not_uploads(self):
        self.assertIsNone(as_pending_upload('avatars/me.png'))
        self.assertIsNone(as_pending_upload(''))
        self.assertIsNone(as_pending_upload(None))

    def test_pending_upload_passes_through(self):
        upload = PendingUpload(temporary_path='/tmp/xyz', original_name='me.png')
        self.assertIs(as_pending_upload(upload), upload)

    def test_multipart_dict(self):
        upload = as_pending_upload({'tmp_name': '/tmp/xyz', 'name': 'me.png', 'error': 0})
        self.assertEqual(upload.temporary_path, '/tmp/xyz')
