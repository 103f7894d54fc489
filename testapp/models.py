"""
Host models used by the file upload tests.
"""

from django.db import models
from django.utils.text import slugify

from fileupload.uploads import as_pending_upload


class Profile(models.Model):
    username = models.CharField(max_length=150)
    avatar = models.CharField(max_length=255, blank=True)
    resume = models.CharField(max_length=255, blank=True, null=True)

    def __str__(self):
        return self.username

    def generate_filename(self, values, field):
        upload = as_pending_upload(values.get(field), spool=False)
        extension = upload.extension if upload else ''
        return f"{slugify(values['username'])}-{field}.{extension}"


class Gallery(models.Model):
    title = models.CharField(max_length=200)
    image = models.CharField(max_length=255, blank=True)

    def __str__(self):
        return self.title
