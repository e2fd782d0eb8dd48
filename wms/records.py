"""
Shared CRUD, archive and bulk behaviour for every entity collection.

Each entity service subclasses ``RecordService`` and sets the collection
name, the id prefix and the labels used in error messages. Entity rules
(derived fields, delete guards, status enumerations) are supplied through
the ``build``/``apply_changes``/``check_deletable`` hooks.
"""

import logging
import re
from datetime import date, datetime, timezone

from .errors import ConflictError, NotFoundError, ValidationError, WMSError

logger = logging.getLogger(__name__)

ARCHIVE_FILTERS = ('include', 'exclude', 'only')


def today():
    return date.today().isoformat()


def utc_timestamp():
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def to_number(value, default=0):
    """Coerce JSON numbers/strings to float or int; fall back to ``default``."""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return int(number) if number.is_integer() else number


def clamp_quantity(value):
    """Floor to an integer and clamp at zero."""
    number = to_number(value, 0)
    return max(0, int(number // 1))


class BulkOperationResult:
    """Per-id tally returned by every bulk operation."""

    def __init__(self):
        self.success_count = 0
        self.errors = []

    @property
    def failed_count(self):
        return len(self.errors)

    @property
    def success(self):
        return not self.errors

    def succeeded(self):
        self.success_count += 1

    def failed(self, message):
        self.errors.append(message)

    def to_dict(self):
        return {
            'success': self.success,
            'successCount': self.success_count,
            'failedCount': self.failed_count,
            'errors': list(self.errors),
        }


class RecordService:
    collection = None
    prefix = None
    id_width = 3
    label = 'Record'  # "<label> not found"
    bulk_label = None  # "<bulk_label> <id> not found"; defaults to label
    statuses = ()

    def __init__(self, store):
        self.store = store

    # ---- reads ----

    def list(self, archived='include'):
        if archived not in ARCHIVE_FILTERS:
            raise ValidationError(f'archived must be one of {", ".join(ARCHIVE_FILTERS)}')
        records = self.store.all(self.collection)
        if archived == 'exclude':
            return [r for r in records if not r.get('archived')]
        if archived == 'only':
            return [r for r in records if r.get('archived')]
        return records

    def find(self, record_id):
        return self.store.get(self.collection, record_id)

    def get(self, record_id):
        record = self.find(record_id)
        if record is None:
            raise NotFoundError(f'{self.label} not found')
        return record

    def next_id(self):
        pattern = re.compile(rf'^{re.escape(self.prefix)}-(\d+)$')
        numbers = [int(m.group(1)) for m in (pattern.match(r['id']) for r in self.store.all(self.collection)) if m]
        next_num = (max(numbers) if numbers else 0) + 1
        return f'{self.prefix}-{next_num:0{self.id_width}d}'

    # ---- hooks ----

    def build(self, payload):
        """Turn a create payload into a full record (without id)."""
        return dict(payload)

    def apply_changes(self, existing, changes):
        """Merge ``changes`` into ``existing`` and recompute derived fields."""
        merged = dict(existing)
        merged.update(changes)
        return merged

    def check_deletable(self, record):
        """Raise WorkflowError when ``record`` may not be deleted."""
        return None

    def check_permanently_deletable(self, record):
        return None

    # ---- writes ----

    def create(self, payload):
        payload = dict(payload or {})
        requested = str(payload.pop('id', '') or '').strip()
        record_id = requested or self.next_id()
        if self.store.exists(self.collection, record_id):
            raise ConflictError(f'{self.label} with id {record_id} already exists')
        record = self.build(payload)
        record['id'] = record_id
        self.store.put(self.collection, record_id, record)
        logger.info('Created %s %s', self.collection, record_id)
        return record

    def update(self, record_id, changes):
        existing = self.get(record_id)
        changes = {k: v for k, v in (changes or {}).items() if k != 'id'}
        record = self.apply_changes(existing, changes)
        record['id'] = record_id
        self.store.put(self.collection, record_id, record)
        logger.info('Updated %s %s', self.collection, record_id)
        return record

    def delete(self, record_id):
        record = self.get(record_id)
        self.check_deletable(record)
        self.store.delete(self.collection, record_id)
        logger.info('Deleted %s %s', self.collection, record_id)

    def archive(self, record_id):
        record = self.get(record_id)
        record['archived'] = True
        record['archivedAt'] = utc_timestamp()
        self.store.put(self.collection, record_id, record)
        logger.info('Archived %s %s', self.collection, record_id)
        return record

    def restore(self, record_id):
        record = self.get(record_id)
        record['archived'] = False
        record.pop('archivedAt', None)
        self.store.put(self.collection, record_id, record)
        logger.info('Restored %s %s', self.collection, record_id)
        return record

    def permanently_delete(self, record_id):
        record = self.get(record_id)
        self.check_permanently_deletable(record)
        self.store.delete(self.collection, record_id)
        logger.info('Permanently deleted %s %s', self.collection, record_id)

    def check_status(self, status):
        if self.statuses and status not in self.statuses:
            raise ValidationError(f'Invalid status "{status}". Expected one of: {", ".join(self.statuses)}')

    # ---- bulk ----

    def _bulk(self, ids, action, describe):
        result = BulkOperationResult()
        bulk_label = self.bulk_label or self.label
        with self.store.batch():
            # Each id counts once, in first-seen order
            for record_id in dict.fromkeys(ids or []):
                if self.find(record_id) is None:
                    result.failed(f'{bulk_label} {record_id} not found')
                    continue
                try:
                    action(record_id)
                except WMSError as exc:
                    result.failed(f'{bulk_label} {record_id}: {exc.message}')
                    continue
                result.succeeded()
        logger.info('Bulk %s on %s: %d ok, %d failed', describe, self.collection,
                    result.success_count, result.failed_count)
        return result

    def bulk_archive(self, ids):
        return self._bulk(ids, self.archive, 'archive')

    def bulk_restore(self, ids):
        return self._bulk(ids, self.restore, 'restore')

    def bulk_delete(self, ids):
        return self._bulk(ids, self.delete, 'delete')

    def bulk_permanently_delete(self, ids):
        return self._bulk(ids, self.permanently_delete, 'permanent delete')

    def bulk_update_status(self, ids, status):
        self.check_status(status)
        return self._bulk(ids, lambda record_id: self.update(record_id, {'status': status}), 'status update')

    def bulk_update(self, ids, changes):
        return self._bulk(ids, lambda record_id: self.update(record_id, changes), 'update')
