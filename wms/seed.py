"""
Default data, schema migrations and maintenance helpers.

``defaults.json`` holds the demo data set the application starts with.
Migrations upgrade records saved by older versions and write them back.
"""

import json
import logging
import os

from .inventory import migrate_inventory_item
from .orders import migrate_order
from .parties import migrate_party
from .payments import migrate_transaction
from .purchasing import migrate_purchase_order
from .sales import migrate_sales_order

logger = logging.getLogger(__name__)

DEFAULTS_PATH = os.path.join(os.path.dirname(__file__), 'data', 'defaults.json')

MIGRATIONS = {
    'inventory': migrate_inventory_item,
    'suppliers': migrate_party,
    'customers': migrate_party,
    'orders': migrate_order,
    'purchase_orders': migrate_purchase_order,
    'sales_orders': migrate_sales_order,
    'cash_bank_transactions': migrate_transaction,
    'payment_transactions': migrate_transaction,
}


def load_defaults(path=DEFAULTS_PATH):
    with open(path, encoding='utf-8') as fh:
        return json.load(fh)


def seed_defaults(services, defaults=None, only_empty=True):
    """
    Write the default data set.

    With ``only_empty`` (the start-up behaviour) nothing is written when the
    store already holds users or inventory.
    """
    store = services.store
    if only_empty and (store.all('users') or store.all('inventory')):
        return False

    defaults = defaults or load_defaults()
    with store.batch():
        for collection, records in defaults.items():
            if collection in ('users', 'categories'):
                continue
            for record in records:
                store.put(collection, record['id'], record)
        for category in defaults.get('categories', []):
            store.put('categories', category['name'], {'subcategories': list(category['subcategories'])})
    # Users go through the service so passwords are hashed
    for user in defaults.get('users', []):
        services.users.create(dict(user))
    logger.info('Seeded default data (%s)', ', '.join(sorted(defaults)))
    return True


def run_migrations(store):
    """Apply every per-collection migration; returns how many records changed."""
    changed = 0
    with store.batch():
        for collection, migrate in MIGRATIONS.items():
            for record in store.all(collection):
                migrated = migrate(record)
                if migrated != record:
                    store.put(collection, record['id'], migrated)
                    changed += 1
    if changed:
        logger.info('Migrated %d record(s) to the current schema', changed)
    return changed


def clear_all_data(store):
    store.clear()
    logger.warning('All data cleared')


def reset_to_default_data(services):
    clear_all_data(services.store)
    seed_defaults(services, only_empty=False)
    logger.warning('Data reset to defaults')
