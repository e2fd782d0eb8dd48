"""Customer orders and their shipments."""

from .records import RecordService, clamp_quantity, today

ORDER_STATUSES = ('Pending', 'Processing', 'Shipped', 'Delivered')
SHIPMENT_STATUSES = ('Pending', 'Processing', 'In Transit', 'Delivered')


def migrate_order(order):
    """Order totals are displayed in pesos; rewrite old dollar-formatted totals."""
    total = order.get('total')
    if isinstance(total, str) and '$' in total:
        return dict(order, total=total.replace('$', '₱'))
    return order


class OrderService(RecordService):
    collection = 'orders'
    prefix = 'ORD'
    id_width = 4
    label = 'Order'
    statuses = ORDER_STATUSES

    def build(self, payload):
        record = {
            'customer': str(payload.get('customer', '')).strip(),
            'items': clamp_quantity(payload.get('items')),
            'total': str(payload.get('total', '₱0')),
            'status': payload.get('status') or 'Pending',
            'date': payload.get('date') or today(),
            'archived': False,
        }
        self.check_status(record['status'])
        return migrate_order(record)

    def apply_changes(self, existing, changes):
        if 'status' in changes:
            self.check_status(changes['status'])
        merged = super().apply_changes(existing, changes)
        merged['items'] = clamp_quantity(merged.get('items'))
        return migrate_order(merged)


class ShipmentService(RecordService):
    collection = 'shipments'
    prefix = 'SHIP'
    id_width = 4
    label = 'Shipment'
    statuses = SHIPMENT_STATUSES

    def build(self, payload):
        record = {
            'orderId': str(payload.get('orderId', '')).strip(),
            'destination': str(payload.get('destination', '')).strip(),
            'carrier': str(payload.get('carrier', '')).strip(),
            'status': payload.get('status') or 'Pending',
            'eta': payload.get('eta', ''),
            'archived': False,
        }
        self.check_status(record['status'])
        return record

    def apply_changes(self, existing, changes):
        if 'status' in changes:
            self.check_status(changes['status'])
        return super().apply_changes(existing, changes)
