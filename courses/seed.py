"""
Seed file loading for the course catalog.

A seed document is either a bare JSON array of items, or an object with
exactly one of the keys ``courses`` / ``fees`` holding that array.
"""
import json
import logging

from django.db import transaction

from .models import Course, CourseFee

logger = logging.getLogger(__name__)

SEED_KEYS = ('courses', 'fees')

COURSE_FIELDS = {
    'title': 'title',
    'shortDescription': 'short_description',
    'description': 'description',
    'category': 'category',
    'level': 'level',
    'duration': 'duration',
    'studyMode': 'study_mode',
    'sortOrder': 'sort_order',
    'isPublished': 'is_published',
}


class SeedFormatError(ValueError):
    """The seed document does not have a supported shape"""


def parse_seed_document(document, expected=None):
    """
    Return ``(kind, items)`` where ``kind`` is ``'list'``, ``'courses'`` or
    ``'fees'``. With ``expected`` set, a wrapped document must use that key.
    """
    if isinstance(document, list):
        return 'list', document

    if not isinstance(document, dict):
        raise SeedFormatError(f"Expected a JSON array or object, got {type(document).__name__}")

    keys = set(document)
    known = keys & set(SEED_KEYS)
    if len(known) != 1 or keys != known:
        raise SeedFormatError(
            f"Expected an object with exactly one of {', '.join(SEED_KEYS)}; got keys {sorted(keys)}"
        )

    kind = known.pop()
    if expected and kind != expected:
        raise SeedFormatError(f"Expected a '{expected}' document, got '{kind}'")
    items = document[kind]
    if not isinstance(items, list):
        raise SeedFormatError(f"'{kind}' must be an array")
    return kind, items


def load_seed_file(path, expected=None):
    with open(path, encoding='utf-8') as handle:
        try:
            document = json.load(handle)
        except json.JSONDecodeError as e:
            raise SeedFormatError(f"Invalid JSON in {path}: {e}")
    _, items = parse_seed_document(document, expected=expected)
    return items


def item_error(index, message):
    return SeedFormatError(f"Item {index}: {message}")


@transaction.atomic
def seed_courses(items):
    """Upsert courses by slug. Returns ``(created, updated)``."""
    created = updated = 0
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise item_error(index, 'must be an object')
        title = str(item.get('title') or '').strip()
        slug = str(item.get('slug') or '').strip() or Course.slug_for(title)
        if not title or not slug:
            raise item_error(index, 'title is required')

        defaults = {
            column: item[key]
            for key, column in COURSE_FIELDS.items()
            if key in item and item[key] is not None
        }
        defaults['title'] = title
        _, was_created = Course.objects.update_or_create(slug=slug, defaults=defaults)
        if was_created:
            created += 1
        else:
            updated += 1

    logger.info(f"Seeded courses: {created} created, {updated} updated")
    return created, updated


@transaction.atomic
def seed_course_fees(items):
    """Upsert fees by course slug. Returns ``(upserted, missing_slugs)``."""
    levels = {choice for choice, _ in CourseFee.LEVEL_CHOICES}
    upserted = 0
    missing = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise item_error(index, 'must be an object')
        slug = str(item.get('courseSlug') or item.get('slug') or '').strip()
        level = item.get('level')
        amount = item.get('amountPence')
        is_active = bool(item.get('isActive', True))

        if level not in levels:
            raise item_error(index, f"level must be one of {', '.join(sorted(levels))}")
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise item_error(index, 'amountPence must be a non-negative integer')
        if is_active and amount == 0:
            raise item_error(index, 'an active fee must be greater than zero')

        course = Course.objects.filter(slug=slug).first()
        if course is None:
            missing.append(slug)
            continue

        CourseFee.objects.update_or_create(course=course, defaults={
            'level': level,
            'amount_pence': amount,
            'currency': str(item.get('currency') or 'GBP').upper(),
            'note': str(item.get('note') or ''),
            'is_active': is_active,
        })
        upserted += 1

    if missing:
        logger.warning(f"Fee seed skipped unknown course slugs: {', '.join(missing)}")
    logger.info(f"Seeded {upserted} course fees")
    return upserted, missing
