"""
Presigned upload broker.

Issues short-lived PUT authorizations so applicants upload attachments
straight to object storage. The whole batch is validated before any URL is
signed; one bad file rejects every file.
"""
import logging
import re
import time
import uuid
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

from backend.errors import UpstreamUnavailable, ValidationFailed

from .limits import UploadLimits, check_file_batch

logger = logging.getLogger(__name__)

SAFE_NAME_MAX_LENGTH = 80
UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]')
REPEATED_UNDERSCORES = re.compile(r'_+')


def sanitize_filename(name):
    """Reduce a client-supplied file name to ``[A-Za-z0-9._-]``, at most 80 chars"""
    base = (name or '').replace('\\', '/').split('/')[-1]
    safe = REPEATED_UNDERSCORES.sub('_', UNSAFE_CHARS.sub('_', base)).lstrip('.')
    safe = safe[:SAFE_NAME_MAX_LENGTH].strip('_')
    return safe or 'file'


class UploadBroker:
    """Signs upload and download URLs for application attachments"""

    def __init__(self, client=None, bucket=None, prefix=None, limits=None, bypass=None,
                 clock=None, expires_in=None):
        self._client = client
        self.bucket = settings.S3_BUCKET_NAME if bucket is None else bucket
        self.prefix = (settings.S3_UPLOAD_PREFIX if prefix is None else prefix).strip('/')
        self.limits = limits or UploadLimits.from_settings()
        self.bypass = settings.BYPASS_S3_PRESIGN if bypass is None else bypass
        self.clock = clock or time.time
        self.expires_in = expires_in or settings.S3_PRESIGN_EXPIRES

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client('s3', region_name=settings.S3_REGION)
        return self._client

    def user_prefix(self, user):
        return f"{self.prefix}/{user.pk}/"

    def build_key(self, user, file_name):
        epoch_ms = int(self.clock() * 1000)
        return f"{self.user_prefix(user)}{epoch_ms}-{uuid.uuid4().hex}-{sanitize_filename(file_name)}"

    def object_url(self, key):
        if self.bypass:
            return f"{settings.APP_BASE_URL}/dev-uploads/{quote(key)}"
        return f"https://{self.bucket}.s3.{settings.S3_REGION}.amazonaws.com/{quote(key)}"

    def validate(self, files):
        errors = check_file_batch(files, self.limits)
        if errors:
            message = errors.get('batch') or next(iter(errors.values()))
            raise ValidationFailed(message, errors={'files': errors})

    def presign_batch(self, user, files):
        """
        Return one upload authorization per descriptor, or raise without
        signing anything.
        """
        self.validate(files)
        if not self.bypass and not self.bucket:
            logger.error("S3_BUCKET_NAME is not configured; cannot presign uploads")
            raise UpstreamUnavailable('File uploads are temporarily unavailable.', code='STORAGE_NOT_CONFIGURED')

        prepared = [
            (item, self.build_key(user, item['fileName']))
            for item in files
        ]

        uploads = []
        for item, key in prepared:
            mime_type = item['mimeType'].strip().lower()
            upload_url = self._presign('put_object', key, ContentType=mime_type)
            object_url = self.object_url(key)
            uploads.append({
                'fileName': item['fileName'],
                'mimeType': mime_type,
                'sizeBytes': item['sizeBytes'],
                'key': key,
                's3Key': key,
                'uploadUrl': upload_url,
                'url': object_url,
                's3Url': object_url,
                'expiresIn': self.expires_in,
            })

        logger.info(f"Issued {len(uploads)} upload authorizations for user {user.pk}")
        return uploads

    def presign_download(self, key, expires_in=None):
        if not self.bypass and not self.bucket:
            raise UpstreamUnavailable('File downloads are temporarily unavailable.', code='STORAGE_NOT_CONFIGURED')
        return self._presign('get_object', key, expires_in=expires_in)

    def _presign(self, operation, key, expires_in=None, **params):
        expires_in = expires_in or self.expires_in
        if self.bypass:
            return f"{self.object_url(key)}?op={operation}&expires={expires_in}"
        try:
            return self.client.generate_presigned_url(
                ClientMethod=operation,
                Params={'Bucket': self.bucket, 'Key': key, **params},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to presign {operation} for {key}: {e}")
            raise UpstreamUnavailable('File storage is temporarily unavailable.')
