"""
Purchase orders and their approval / receiving workflow.

Status flow::

    Draft -> Pending Approval -> Approved -> Ordered -> Partially Received -> Received
                             \\-> Rejected
    (any status except Received/Cancelled) -> Cancelled

Receiving goods adds the received quantities to the matching inventory
items; the purchase order and the inventory changes are committed in one
batch.
"""

import logging

from .errors import ValidationError, WorkflowError
from .inventory import InventoryService
from .records import RecordService, clamp_quantity, to_number, today

logger = logging.getLogger(__name__)

DRAFT = 'Draft'
PENDING_APPROVAL = 'Pending Approval'
APPROVED = 'Approved'
REJECTED = 'Rejected'
ORDERED = 'Ordered'
PARTIALLY_RECEIVED = 'Partially Received'
RECEIVED = 'Received'
CANCELLED = 'Cancelled'

PO_STATUSES = (DRAFT, PENDING_APPROVAL, APPROVED, REJECTED, ORDERED, PARTIALLY_RECEIVED, RECEIVED, CANCELLED)
SHIPPING_STATUSES = ('Pending', 'Processing', 'Shipped', 'In Transit', 'Delivered')
DELETABLE_STATUSES = (DRAFT, CANCELLED, REJECTED)
PENDING_VALUE_STATUSES = (PENDING_APPROVAL, APPROVED, ORDERED)


def line_total(items):
    return round(sum(to_number(i.get('totalPrice'), 0) for i in items), 2)


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
        'quantityReceived': clamp_quantity(line.get('quantityReceived')),
    }


def migrate_purchase_order(po):
    """Backfill fields added to purchase orders after the first release."""
    migrated = dict(po)
    total_amount = to_number(po.get('totalAmount'), 0)
    total_paid = to_number(po.get('totalPaid'), 0)
    po_date = po.get('poDate') or po.get('createdDate') or today()
    migrated.update(
        poDate=po_date,
        supplierCountry=po.get('supplierCountry') or '',
        supplierCity=po.get('supplierCity') or '',
        billNumber=po.get('billNumber') or '',
        items=po.get('items') or [],
        totalAmount=total_amount,
        totalPaid=total_paid,
        poBalance=po['poBalance'] if po.get('poBalance') is not None else round(total_amount - total_paid, 2),
        status=po.get('status') or DRAFT,
        shippingStatus=po.get('shippingStatus') or 'Pending',
        createdDate=po.get('createdDate') or po_date,
    )
    return migrated


class PurchaseOrderService(RecordService):
    collection = 'purchase_orders'
    prefix = 'PO'
    label = 'Purchase Order'
    bulk_label = 'PO'
    statuses = PO_STATUSES

    def __init__(self, store, inventory=None):
        super().__init__(store)
        self.inventory = inventory or InventoryService(store)

    def build(self, payload):
        items = [normalise_line(line) for line in payload.get('items') or []]
        for line in items:
            line['quantityReceived'] = 0
        total_amount = line_total(items)
        total_paid = to_number(payload.get('totalPaid'), 0)
        po_date = payload.get('poDate') or today()
        record = {
            'poDate': po_date,
            'supplierId': str(payload.get('supplierId', '')).strip(),
            'supplierName': str(payload.get('supplierName', '')).strip(),
            'supplierCountry': payload.get('supplierCountry', ''),
            'supplierCity': payload.get('supplierCity', ''),
            'billNumber': payload.get('billNumber', ''),
            'items': items,
            'totalAmount': total_amount,
            'totalPaid': total_paid,
            'poBalance': round(total_amount - total_paid, 2),
            'status': DRAFT,
            'shippingStatus': 'Pending',
            'createdBy': payload.get('createdBy', ''),
            'createdDate': po_date,
            'approvedBy': None,
            'approvedDate': None,
            'receivedDate': None,
            'notes': payload.get('notes', ''),
            'expectedDeliveryDate': payload.get('expectedDeliveryDate'),
            'archived': False,
        }
        if payload.get('actualCost') is not None:
            record['actualCost'] = to_number(payload['actualCost'])
        return record

    def apply_changes(self, existing, changes):
        if 'status' in changes:
            self.check_status(changes['status'])
        if 'shippingStatus' in changes and changes['shippingStatus'] not in SHIPPING_STATUSES:
            raise ValidationError(f'Invalid shipping status "{changes["shippingStatus"]}"')
        merged = super().apply_changes(existing, changes)
        if 'items' in changes:
            merged['items'] = [normalise_line(line) for line in merged['items'] or []]
            merged['totalAmount'] = line_total(merged['items'])
        if 'items' in changes or 'totalPaid' in changes:
            merged['totalPaid'] = to_number(merged.get('totalPaid'), 0)
            merged['poBalance'] = round(to_number(merged.get('totalAmount'), 0) - merged['totalPaid'], 2)
        return merged

    def check_deletable(self, record):
        if record.get('status') not in DELETABLE_STATUSES:
            raise WorkflowError('Can only delete Draft, Cancelled, or Rejected purchase orders')

    # ---- workflow ----

    def _transition(self, po_id, allowed, new_status, message, **fields):
        po = self.get(po_id)
        if po.get('status') not in allowed:
            raise WorkflowError(message)
        previous = po.get('status')
        po.update(fields)
        po['status'] = new_status
        self.store.put(self.collection, po_id, po)
        logger.info('Purchase order %s: %s -> %s', po_id, previous, new_status)
        return po

    def submit(self, po_id):
        return self._transition(po_id, (DRAFT,), PENDING_APPROVAL,
                                'Only Draft purchase orders can be submitted for approval')

    def approve(self, po_id, approver_id):
        return self._transition(po_id, (PENDING_APPROVAL,), APPROVED,
                                'Only Pending Approval purchase orders can be approved',
                                approvedBy=approver_id, approvedDate=today())

    def reject(self, po_id, approver_id):
        return self._transition(po_id, (PENDING_APPROVAL,), REJECTED,
                                'Only Pending Approval purchase orders can be rejected',
                                approvedBy=approver_id, approvedDate=today())

    def mark_ordered(self, po_id):
        return self._transition(po_id, (APPROVED,), ORDERED,
                                'Only Approved purchase orders can be marked as ordered')

    def cancel(self, po_id):
        allowed = tuple(s for s in PO_STATUSES if s not in (RECEIVED, CANCELLED))
        return self._transition(po_id, allowed, CANCELLED,
                                'Cannot cancel received or already cancelled purchase orders')

    def receive(self, po_id, received_items, actual_cost=None):
        """
        Record received goods against an Ordered / Partially Received PO.

        ``received_items`` is a list of ``{inventoryItemId, quantityReceived}``.
        Returns ``{purchaseOrder, inventoryUpdates}``.
        """
        po = self.get(po_id)
        if po.get('status') not in (ORDERED, PARTIALLY_RECEIVED):
            raise WorkflowError('Can only receive items for Ordered or Partially Received purchase orders')

        received_by_item = {}
        for entry in received_items or []:
            item_id = entry.get('inventoryItemId')
            quantity = clamp_quantity(entry.get('quantityReceived'))
            received_by_item[item_id] = received_by_item.get(item_id, 0) + quantity

        # Validate every line before touching the store
        updated_lines = []
        for line in po.get('items', []):
            line = dict(line)
            received = received_by_item.get(line.get('inventoryItemId'))
            if received is not None:
                new_received = clamp_quantity(line.get('quantityReceived')) + received
                if new_received > clamp_quantity(line.get('quantity')):
                    raise WorkflowError(f'Cannot receive more than ordered quantity for {line.get("itemName")}')
                line['quantityReceived'] = new_received
            updated_lines.append(line)

        inventory_updates = []
        with self.store.batch():
            for line in po.get('items', []):
                received = received_by_item.get(line.get('inventoryItemId'))
                if not received:
                    continue
                item = self.inventory.find(line['inventoryItemId'])
                if item is None:
                    logger.warning('Purchase order %s references missing inventory item %s',
                                   po_id, line['inventoryItemId'])
                    continue
                updated_item = self.inventory.adjust_quantity(item, received)
                self.store.put(self.inventory.collection, item['id'], updated_item)
                inventory_updates.append({
                    'itemId': item['id'],
                    'itemName': line.get('itemName'),
                    'previousQty': clamp_quantity(item.get('quantity')),
                    'newQty': updated_item['quantity'],
                })

            all_received = all(
                clamp_quantity(l.get('quantityReceived')) >= clamp_quantity(l.get('quantity')) for l in updated_lines
            )
            any_received = any(clamp_quantity(l.get('quantityReceived')) > 0 for l in updated_lines)
            po['items'] = updated_lines
            if all_received:
                po['status'] = RECEIVED
                po['receivedDate'] = today()
            elif any_received:
                po['status'] = PARTIALLY_RECEIVED
            if actual_cost is not None:
                po['actualCost'] = to_number(actual_cost)
            self.store.put(self.collection, po_id, po)

        logger.info('Received goods on purchase order %s (%d inventory update(s)), status %s',
                    po_id, len(inventory_updates), po['status'])
        return {'purchaseOrder': po, 'inventoryUpdates': inventory_updates}

    def stats(self):
        orders = self.list(archived='exclude')

        def count(status):
            return sum(1 for po in orders if po.get('status') == status)

        return {
            'total': len(orders),
            'draft': count(DRAFT),
            'pendingApproval': count(PENDING_APPROVAL),
            'approved': count(APPROVED),
            'ordered': count(ORDERED),
            'partiallyReceived': count(PARTIALLY_RECEIVED),
            'received': count(RECEIVED),
            'cancelled': count(CANCELLED),
            'rejected': count(REJECTED),
            'totalValue': round(sum(to_number(po.get('totalAmount'), 0) for po in orders), 2),
            'pendingValue': round(sum(to_number(po.get('totalAmount'), 0) for po in orders
                                      if po.get('status') in PENDING_VALUE_STATUSES), 2),
        }
