"""
File batch limits shared by the upload broker and application intake
"""
from dataclasses import dataclass

from django.conf import settings

MB = 1024 * 1024

ALLOWED_MIME_TYPES = (
    'application/pdf',
    'image/jpeg',
    'image/png',
    'image/webp',
)


@dataclass(frozen=True)
class UploadLimits:
    max_files: int
    max_per_file_bytes: int
    max_total_bytes: int
    allowed_mime_types: tuple = ALLOWED_MIME_TYPES

    @classmethod
    def from_settings(cls):
        return cls(
            max_files=settings.APP_MAX_FILES,
            max_per_file_bytes=settings.APP_MAX_PER_FILE_MB * MB,
            max_total_bytes=settings.APP_MAX_TOTAL_MB * MB,
        )


def check_file_batch(files, limits, allow_empty=False):
    """
    Validate a batch of ``{fileName, mimeType, sizeBytes}`` descriptors.

    Returns a dict of errors keyed by position (plus ``batch`` for limits that
    apply to the whole list); an empty dict means the batch is acceptable.
    """
    if not isinstance(files, list):
        return {'batch': 'Expected a list of files.'}
    if not files:
        return {} if allow_empty else {'batch': 'At least one file is required.'}
    if len(files) > limits.max_files:
        return {'batch': f'You can upload at most {limits.max_files} files.'}

    errors = {}
    total = 0
    for index, item in enumerate(files):
        if not isinstance(item, dict):
            errors[str(index)] = 'Invalid file descriptor.'
            continue
        name = str(item.get('fileName') or '').strip()
        mime_type = str(item.get('mimeType') or '').strip().lower()
        size = item.get('sizeBytes')

        if not name:
            errors[str(index)] = 'File name is required.'
        elif mime_type not in limits.allowed_mime_types:
            errors[str(index)] = f'{name}: only PDF, JPEG, PNG and WEBP files are allowed.'
        elif isinstance(size, bool) or not isinstance(size, int) or size <= 0:
            errors[str(index)] = f'{name}: file size is invalid.'
        elif size > limits.max_per_file_bytes:
            errors[str(index)] = f'{name}: files must be {limits.max_per_file_bytes // MB} MB or smaller.'
        else:
            total += size

    if not errors and total > limits.max_total_bytes:
        errors['batch'] = f'Total upload size must be {limits.max_total_bytes // MB} MB or less.'
    return errors
