"""Inventory items and their category catalogue."""

import logging

from .errors import ConflictError, NotFoundError, ValidationError
from .records import RecordService, clamp_quantity, to_number

logger = logging.getLogger(__name__)

IN_STOCK = 'In Stock'
LOW_STOCK = 'Low Stock'
CRITICAL = 'Critical'
STOCK_STATUSES = (IN_STOCK, LOW_STOCK, CRITICAL)

# Reorder threshold assumed for legacy items that carried none
LEGACY_REORDER_THRESHOLD = 20


def compute_status(quantity, reorder_required=False, reorder_level=None):
    """
    Stock status from the on-hand quantity.

    Nothing on hand is Critical; at or below the reorder level, or flagged
    for reorder, is Low Stock; anything else is In Stock.
    """
    if quantity <= 0:
        return CRITICAL
    if reorder_level is not None and quantity <= reorder_level:
        return LOW_STOCK
    if reorder_required:
        return LOW_STOCK
    return IN_STOCK


def migrate_inventory_item(item):
    """Backfill fields missing from items saved by older versions."""
    needs_migration = any(
        item.get(field) is None for field in ('quantityPurchased', 'quantitySold', 'reorderRequired')
    )
    if not needs_migration:
        return item

    migrated = {k: v for k, v in item.items() if k not in ('maintainStockAt', 'minimumStock')}
    quantity = clamp_quantity(item.get('quantity'))
    minimum_stock = item.get('minimumStock')
    reorder_level = item.get('reorderLevel')
    if reorder_level is None and minimum_stock is not None:
        migrated['reorderLevel'] = clamp_quantity(minimum_stock)

    quantity_purchased = item.get('quantityPurchased')
    if quantity_purchased is None:
        quantity_purchased = int(quantity * 1.5)
    quantity_sold = item.get('quantitySold')
    if quantity_sold is None:
        quantity_sold = max(0, int(quantity_purchased - quantity))
    reorder_required = item.get('reorderRequired')
    if reorder_required is None:
        threshold = next(
            (v for v in (minimum_stock, reorder_level) if v is not None), LEGACY_REORDER_THRESHOLD
        )
        reorder_required = quantity <= threshold

    migrated.update(
        quantity=quantity,
        brand=item.get('brand') or 'Unknown',
        pricePerPiece=to_number(item.get('pricePerPiece'), 0),
        supplierId=item.get('supplierId') or 'SUP-001',
        quantityPurchased=quantity_purchased,
        quantitySold=quantity_sold,
        reorderRequired=bool(reorder_required),
    )
    migrated['status'] = compute_status(quantity, migrated['reorderRequired'], migrated.get('reorderLevel'))
    return migrated


class InventoryService(RecordService):
    collection = 'inventory'
    prefix = 'INV'
    label = 'Item'
    statuses = STOCK_STATUSES

    def _normalise(self, record):
        """Clamp quantities and derive reorder flag and status."""
        for field in ('quantity', 'quantityPurchased', 'quantitySold'):
            record[field] = clamp_quantity(record.get(field))
        reorder_level = record.get('reorderLevel')
        if reorder_level is not None and reorder_level != '':
            reorder_level = clamp_quantity(reorder_level)
            record['reorderLevel'] = reorder_level
        else:
            reorder_level = None
            record.pop('reorderLevel', None)
        if reorder_level is not None:
            reorder_required = record['quantity'] <= reorder_level
        else:
            # Without a reorder level the flag is set by hand
            reorder_required = bool(record.get('reorderRequired', False))
        record['reorderRequired'] = reorder_required
        record['status'] = compute_status(record['quantity'], reorder_required, reorder_level)
        return record

    def build(self, payload):
        record = {
            'name': str(payload.get('name', '')).strip(),
            'category': payload.get('category', ''),
            'subcategory': payload.get('subcategory'),
            'quantity': payload.get('quantity', 0),
            'location': str(payload.get('location', '')).strip(),
            'brand': str(payload.get('brand', '')).strip(),
            'pricePerPiece': to_number(payload.get('pricePerPiece'), 0),
            'supplierId': str(payload.get('supplierId', '')).strip(),
            'quantityPurchased': payload.get('quantityPurchased', payload.get('quantity', 0)),
            'quantitySold': payload.get('quantitySold', 0),
            'reorderRequired': payload.get('reorderRequired', False),
            'reorderLevel': payload.get('reorderLevel'),
            'description': payload.get('description', ''),
            'photoUrl': payload.get('photoUrl'),
            'archived': False,
        }
        if record['subcategory'] is None:
            record.pop('subcategory')
        if record['photoUrl'] is None:
            record.pop('photoUrl')
        return self._normalise(record)

    def apply_changes(self, existing, changes):
        # status is always derived
        changes = {k: v for k, v in changes.items() if k != 'status'}
        merged = super().apply_changes(existing, changes)
        return self._normalise(merged)

    def bulk_update_status(self, ids, status):
        raise ValidationError('Inventory status is derived from quantity and cannot be set directly')

    def adjust_quantity(self, record, delta):
        """Return a copy of ``record`` with ``delta`` added to the on-hand quantity."""
        updated = dict(record)
        updated['quantity'] = clamp_quantity(record.get('quantity')) + delta
        if delta > 0:
            updated['quantityPurchased'] = clamp_quantity(record.get('quantityPurchased')) + delta
        return self._normalise(updated)

    def summary(self):
        items = self.list(archived='exclude')
        counts = {status: 0 for status in STOCK_STATUSES}
        for item in items:
            counts[item.get('status', IN_STOCK)] = counts.get(item.get('status', IN_STOCK), 0) + 1
        return {
            'totalItems': len(items),
            'totalQuantity': sum(clamp_quantity(i.get('quantity')) for i in items),
            'totalValue': round(sum(clamp_quantity(i.get('quantity')) * to_number(i.get('pricePerPiece'), 0)
                                    for i in items), 2),
            'reorderRequired': sum(1 for i in items if i.get('reorderRequired')),
            'byStatus': counts,
        }


class CategoryService:
    """Category catalogue: each category document holds its subcategory names."""

    collection = 'categories'

    def __init__(self, store):
        self.store = store

    def list(self):
        return [{'name': c['id'], 'subcategories': list(c.get('subcategories', []))}
                for c in self.store.all(self.collection)]

    def _find(self, name):
        record = self.store.get(self.collection, name)
        if record is None:
            raise NotFoundError(f'Category "{name}" not found')
        return {'name': record['id'], 'subcategories': list(record.get('subcategories', []))}

    def _save(self, category):
        self.store.put(self.collection, category['name'], {'subcategories': category['subcategories']})
        return category

    def add_category(self, name):
        name = (name or '').strip()
        if not name:
            raise ValidationError('Category name is required')
        if '/' in name:
            raise ValidationError('Category name cannot contain "/"')
        if any(c['name'].lower() == name.lower() for c in self.list()):
            raise ConflictError(f'Category "{name}" already exists')
        logger.info('Added category %s', name)
        return self._save({'name': name, 'subcategories': []})

    def add_subcategory(self, category_name, subcategory_name):
        category = self._find(category_name)
        subcategory_name = (subcategory_name or '').strip()
        if not subcategory_name:
            raise ValidationError('Subcategory name is required')
        if any(s.lower() == subcategory_name.lower() for s in category['subcategories']):
            raise ConflictError(f'Subcategory "{subcategory_name}" already exists in "{category_name}"')
        category['subcategories'].append(subcategory_name)
        return self._save(category)

    def delete_category(self, name):
        self._find(name)
        self.store.delete(self.collection, name)
        logger.info('Deleted category %s', name)

    def delete_subcategory(self, category_name, subcategory_name):
        category = self._find(category_name)
        category['subcategories'] = [s for s in category['subcategories'] if s != subcategory_name]
        return self._save(category)
