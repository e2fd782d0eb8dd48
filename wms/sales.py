"""Sales orders: totals, balances and receipt status."""

import logging

from .errors import ValidationError, WorkflowError
from .records import RecordService, clamp_quantity, to_number, today

logger = logging.getLogger(__name__)

UNPAID = 'Unpaid'
PARTIALLY_PAID = 'Partially Paid'
PAID = 'Paid'
OVERDUE = 'Overdue'
RECEIPT_STATUSES = (UNPAID, PARTIALLY_PAID, PAID, OVERDUE)
SHIPPING_STATUSES = ('Pending', 'Processing', 'Shipped', 'In Transit', 'Delivered')
DELIVERED = 'Delivered'


def normalise_line(line):
    quantity = clamp_quantity(line.get('quantity'))
    unit_price = to_number(line.get('unitPrice'), 0)
    total_price = line.get('totalPrice')
    return {
        'inventoryItemId': str(line.get('inventoryItemId', '')).strip(),
        'itemName': str(line.get('itemName', '')).strip(),
        'quantity': quantity,
        'unitPrice': unit_price,
        'totalPrice': to_number(total_price, 0) if total_price is not None else round(quantity * unit_price, 2),
        'quantityShipped': clamp_quantity(line.get('quantityShipped')),
    }


def receipt_status_for(total_amount, total_received, previous=None):
    """Derive the receipt status from what has been received so far."""
    if total_received >= total_amount and total_amount > 0:
        return PAID
    if total_received > 0:
        return PARTIALLY_PAID
    if previous == OVERDUE:
        return OVERDUE
    return UNPAID


def migrate_sales_order(so):
    migrated = dict(so)
    total_amount = to_number(so.get('totalAmount'), 0)
    total_received = to_number(so.get('totalReceived'), 0)
    so_date = so.get('soDate') or so.get('createdDate') or today()
    migrated.update(
        soDate=so_date,
        customerCountry=so.get('customerCountry') or '',
        customerCity=so.get('customerCity') or '',
        invoiceNumber=so.get('invoiceNumber') or '',
        items=so.get('items') or [],
        totalAmount=total_amount,
        totalReceived=total_received,
        soBalance=so['soBalance'] if so.get('soBalance') is not None else round(total_amount - total_received, 2),
        receiptStatus=so.get('receiptStatus') or UNPAID,
        shippingStatus=so.get('shippingStatus') or 'Pending',
        createdDate=so.get('createdDate') or so_date,
        archived=bool(so.get('archived', False)),
    )
    return migrated


class SalesOrderService(RecordService):
    collection = 'sales_orders'
    prefix = 'SO'
    label = 'Sales Order'
    statuses = SHIPPING_STATUSES

    def __init__(self, store, ims_sync=None):
        super().__init__(store)
        # Set when delivered orders should be pushed to the IMS catalogue
        self.ims_sync = ims_sync

    def _check_statuses(self, record):
        if record.get('receiptStatus') not in RECEIPT_STATUSES:
            raise ValidationError(f'Invalid receipt status "{record.get("receiptStatus")}"')
        if record.get('shippingStatus') not in SHIPPING_STATUSES:
            raise ValidationError(f'Invalid shipping status "{record.get("shippingStatus")}"')

    def _initial_receipt_status(self, total_amount, total_received):
        if total_received >= total_amount:
            return PAID
        return PARTIALLY_PAID if total_received > 0 else UNPAID

    def build(self, payload):
        items = [normalise_line(line) for line in payload.get('items') or []]
        for line in items:
            line['quantityShipped'] = 0
        total_amount = round(sum(line['totalPrice'] for line in items), 2)
        total_received = to_number(payload.get('totalReceived'), 0)
        so_date = payload.get('soDate') or today()
        record = {
            'soDate': so_date,
            'customerId': str(payload.get('customerId', '')).strip(),
            'customerName': str(payload.get('customerName', '')).strip(),
            'customerCountry': payload.get('customerCountry', ''),
            'customerCity': payload.get('customerCity', ''),
            'deliveryAddress': payload.get('deliveryAddress', ''),
            'invoiceNumber': payload.get('invoiceNumber', ''),
            'items': items,
            'totalAmount': total_amount,
            'totalReceived': total_received,
            'soBalance': round(total_amount - total_received, 2),
            'receiptStatus': payload.get('receiptStatus') or self._initial_receipt_status(total_amount, total_received),
            'shippingStatus': payload.get('shippingStatus') or 'Pending',
            'createdBy': payload.get('createdBy', ''),
            'createdDate': so_date,
            'notes': payload.get('notes', ''),
            'expectedDeliveryDate': payload.get('expectedDeliveryDate'),
            'archived': False,
        }
        self._check_statuses(record)
        return record

    def apply_changes(self, existing, changes):
        merged = super().apply_changes(existing, changes)
        if 'items' in changes:
            merged['items'] = [normalise_line(line) for line in merged['items'] or []]
            merged['totalAmount'] = round(sum(line['totalPrice'] for line in merged['items']), 2)
        merged['totalAmount'] = to_number(merged.get('totalAmount'), 0)
        merged['totalReceived'] = to_number(merged.get('totalReceived'), 0)
        merged['soBalance'] = round(merged['totalAmount'] - merged['totalReceived'], 2)
        if 'totalReceived' in changes and 'receiptStatus' not in changes:
            merged['receiptStatus'] = receipt_status_for(
                merged['totalAmount'], merged['totalReceived'], existing.get('receiptStatus'))
        self._check_statuses(merged)
        return merged

    def update(self, record_id, changes):
        previous = self.get(record_id).get('shippingStatus')
        record = super().update(record_id, changes)
        if self.ims_sync is not None and previous != DELIVERED and record.get('shippingStatus') == DELIVERED:
            result = self.ims_sync.sync_sales_order(record)
            logger.info('Sales order %s delivered; IMS sync synced %d item(s)', record_id, result['syncedItems'])
        return record

    def bulk_update_status(self, ids, status):
        self.check_status(status)
        return self._bulk(ids, lambda record_id: self.update(record_id, {'shippingStatus': status}),
                          'shipping status update')

    def _permanently_delete_archived(self, record_id):
        if not self.get(record_id).get('archived'):
            raise WorkflowError('must be archived before permanent deletion')
        self.permanently_delete(record_id)

    def bulk_permanently_delete(self, ids):
        return self._bulk(ids, self._permanently_delete_archived, 'permanent delete')

    def stats(self):
        orders = self.list(archived='exclude')
        total_value = round(sum(to_number(so.get('totalAmount'), 0) for so in orders), 2)
        total_received = round(sum(to_number(so.get('totalReceived'), 0) for so in orders), 2)
        stats = {
            'totalOrders': len(orders),
            'totalValue': total_value,
            'totalReceived': total_received,
            'outstandingBalance': round(sum(to_number(so.get('soBalance'), 0) for so in orders), 2),
            'collectionRate': round(total_received / total_value * 100) if total_value else 0,
        }
        for status in RECEIPT_STATUSES:
            key = status[0].lower() + status[1:].replace(' ', '')
            stats[key] = sum(1 for so in orders if so.get('receiptStatus') == status)
        return stats
