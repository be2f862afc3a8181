"""
Sequential reference allocation for enquiries and applications.

Each scope (calendar month for enquiries, day plus application type for
applications) owns one counter row. Allocation is a single upsert that
creates the row at 1 or increments it, and returns the new value, so two
concurrent submissions in the same scope can never read the same number.
"""
import logging
import re

from django.db import DatabaseError, connection, transaction
from django.db.models import F

from backend.errors import StorageUnavailable

from .models import ApplicationCounter, EnquiryCounter

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 4
SURNAME_FALLBACK = 'SURNAME'
NON_LETTERS = re.compile(r'[^A-Z]')

UPSERT_VENDORS = ('postgresql', 'sqlite')


def normalize_surname(text):
    """Uppercase ASCII letters only; ``SURNAME`` when nothing is left"""
    letters = NON_LETTERS.sub('', (text or '').upper())
    return letters or SURNAME_FALLBACK


def pad_sequence(value):
    return str(value).zfill(SEQUENCE_WIDTH)


def format_enquiry_ref(year, month, sequence):
    return f"ENQ-{month:02d}-{year:04d}-{pad_sequence(sequence)}"


def application_scope_key(date_key, application_type):
    return f"{date_key}-{application_type}"


def format_application_ref(surname, year_of_birth, date_key, sequence, application_type='STANDARD'):
    prefix = 'SCHOLAR-APP' if application_type == 'SCHOLARSHIP' else 'APP'
    return f"{prefix}-{normalize_surname(surname)}-{year_of_birth:04d}-{date_key}-{pad_sequence(sequence)}"


class ReferenceAllocator:
    """Hands out the next value of a counter scope"""

    def next_enquiry_sequence(self, year, month):
        return self._next(EnquiryCounter, {'year': year, 'month': month})

    def next_application_sequence(self, scope_key):
        return self._next(ApplicationCounter, {'scope_key': scope_key})

    def _next(self, model, scope):
        try:
            if connection.vendor in UPSERT_VENDORS:
                return self._upsert(model, scope)
            return self._locked_increment(model, scope)
        except DatabaseError as e:
            logger.error(f"Reference allocation failed for {model.__name__} {scope}: {e}")
            raise StorageUnavailable()

    def _upsert(self, model, scope):
        qn = connection.ops.quote_name
        table = qn(model._meta.db_table)
        columns = list(scope)
        column_sql = ', '.join(qn(column) for column in columns)
        placeholders = ', '.join(['%s'] * len(columns))
        last_value = qn('last_value')
        sql = (
            f"INSERT INTO {table} ({column_sql}, {last_value}) VALUES ({placeholders}, 1) "
            f"ON CONFLICT ({column_sql}) DO UPDATE SET {last_value} = {table}.{last_value} + 1 "
            f"RETURNING {last_value}"
        )
        with connection.cursor() as cursor:
            cursor.execute(sql, [scope[column] for column in columns])
            return cursor.fetchone()[0]

    def _locked_increment(self, model, scope):
        # Backends without INSERT .. ON CONFLICT: lock the row, then bump it
        with transaction.atomic():
            counter, created = model.objects.select_for_update().get_or_create(
                defaults={'last_value': 1}, **scope
            )
            if created:
                return 1
            model.objects.filter(pk=counter.pk).update(last_value=F('last_value') + 1)
            counter.refresh_from_db(fields=['last_value'])
            return counter.last_value


default_allocator = ReferenceAllocator()
