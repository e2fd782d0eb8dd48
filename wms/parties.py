"""Suppliers and customers share one shape: contact details plus a running balance."""

from .records import RecordService, to_number

ACTIVE = 'Active'
INACTIVE = 'Inactive'
PARTY_STATUSES = (ACTIVE, INACTIVE)

TEXT_FIELDS = ('name', 'contact', 'email', 'phone', 'category', 'country', 'city', 'address')


def migrate_party(record):
    """Backfill location and balance fields added after the first release."""
    migrated = dict(record)
    for field in ('country', 'city', 'address'):
        if migrated.get(field) is None:
            migrated[field] = ''
    purchases = to_number(migrated.get('purchases'), 0)
    payments = to_number(migrated.get('payments'), 0)
    migrated['purchases'] = purchases
    migrated['payments'] = payments
    if migrated.get('balance') is None:
        migrated['balance'] = purchases - payments
    if migrated.get('status') is None:
        migrated['status'] = ACTIVE
    return migrated


class PartyService(RecordService):
    statuses = PARTY_STATUSES

    def build(self, payload):
        record = {field: str(payload.get(field, '') or '').strip() for field in TEXT_FIELDS}
        record['status'] = payload.get('status') or ACTIVE
        self.check_status(record['status'])
        record['purchases'] = to_number(payload.get('purchases'), 0)
        record['payments'] = to_number(payload.get('payments'), 0)
        record['balance'] = record['purchases'] - record['payments']
        record['archived'] = False
        return record

    def apply_changes(self, existing, changes):
        if 'status' in changes:
            self.check_status(changes['status'])
        merged = super().apply_changes(existing, changes)
        merged['purchases'] = to_number(merged.get('purchases'), 0)
        merged['payments'] = to_number(merged.get('payments'), 0)
        merged['balance'] = merged['purchases'] - merged['payments']
        return merged


class SupplierService(PartyService):
    collection = 'suppliers'
    prefix = 'SUP'
    label = 'Supplier'


class CustomerService(PartyService):
    collection = 'customers'
    prefix = 'CUS'
    label = 'Customer'
