"""
Push delivered sales-order stock into the IMS product catalogue.

The IMS (the storefront inventory system) reads the ``ims_products``
collection. Each delivered line either tops up the matching IMS product
(found by WMS inventory id, then by SKU) or creates a new one.
"""

import logging
import re

from .records import clamp_quantity, to_number, utc_timestamp

logger = logging.getLogger(__name__)

IMS_PRODUCTS = 'ims_products'
DEFAULT_MIN_QUANTITY = 10


def ims_status(quantity, min_quantity):
    if quantity <= 0:
        return 'out-of-stock'
    if quantity <= min_quantity:
        return 'low-stock'
    return 'in-stock'


def ims_sku(inventory_id):
    """INV-001 -> WMS-001"""
    return f'WMS-{inventory_id.replace("INV-", "")}'


class ImsSyncService:

    def __init__(self, store):
        self.store = store

    def _find_product(self, inventory_id):
        products = self.store.all(IMS_PRODUCTS)
        for product in products:
            if product.get('wmsInventoryId') == inventory_id:
                return product
        sku = ims_sku(inventory_id)
        for product in products:
            if product.get('sku') == sku:
                return product
        return None

    def _new_product(self, item, quantity, supplier_name, sales_order_id):
        min_quantity = clamp_quantity(item.get('reorderLevel')) or DEFAULT_MIN_QUANTITY
        now = utc_timestamp()
        return {
            'brand': item.get('brand') or '',
            'category': item.get('category') or 'Uncategorized',
            'description': item.get('description') or '',
            'images': [item['photoUrl']] if item.get('photoUrl') else [],
            'minQuantity': min_quantity,
            'name': item.get('name'),
            'price': to_number(item.get('pricePerPiece'), 0),
            'quantity': quantity,
            'sku': ims_sku(item['id']),
            'sold': 0,
            'status': ims_status(quantity, min_quantity),
            'supplier': supplier_name,
            'wmsInventoryId': item['id'],
            'wmsSalesOrderId': sales_order_id,
            'createdAt': now,
            'updatedAt': now,
            'lastSyncedFromWMS': now,
        }

    def sync_sales_order(self, sales_order):
        """Returns ``{success, syncedItems, errors}``."""
        errors = []
        synced = 0
        suppliers = {s['id']: s.get('name') for s in self.store.all('suppliers')}

        with self.store.batch():
            for line in sales_order.get('items', []):
                item_id = line.get('inventoryItemId')
                item = self.store.get('inventory', item_id)
                if item is None:
                    errors.append(f'Inventory item {item_id} not found')
                    continue

                delivered = clamp_quantity(line.get('quantity'))
                existing = self._find_product(item['id'])
                if existing is not None:
                    quantity = clamp_quantity(existing.get('quantity')) + delivered
                    min_quantity = clamp_quantity(existing.get('minQuantity')) or DEFAULT_MIN_QUANTITY
                    now = utc_timestamp()
                    existing.update(
                        quantity=quantity,
                        status=ims_status(quantity, min_quantity),
                        updatedAt=now,
                        lastSyncedFromWMS=now,
                        wmsSalesOrderId=sales_order['id'],
                    )
                    self.store.put(IMS_PRODUCTS, existing['id'], existing)
                    logger.info('IMS sync: updated %s +%d (total %d)', item.get('name'), delivered, quantity)
                else:
                    supplier_name = suppliers.get(item.get('supplierId')) or 'Unknown Supplier'
                    product = self._new_product(item, delivered, supplier_name, sales_order['id'])
                    doc_id = 'wms-' + re.sub(r'[^a-z0-9]', '-', item['id'].lower())
                    self.store.put(IMS_PRODUCTS, doc_id, product)
                    logger.info('IMS sync: created %s with qty %d', item.get('name'), delivered)
                synced += 1

        if errors:
            logger.warning('IMS sync of %s finished with %d error(s)', sales_order.get('id'), len(errors))
        return {'success': not errors, 'syncedItems': synced, 'errors': errors}
