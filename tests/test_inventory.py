"""
INVENTORY TESTS
Tests for inventory item CRUD, validation and derived stock status.

This test module covers:
- Creating items with sequential ids
- Payload validation with per-field messages
- Stock status and reorder flag recomputed from quantity
- Status cannot be set directly
- Fetching, updating and deleting items

Test scenarios:
- Quantity at or below the reorder level is Low Stock
- Zero quantity is Critical
- Restocking above the reorder level clears the reorder flag
"""

import pytest

from app import create_app, db


@pytest.fixture
def app():
    """
    Create test Flask application with an empty in-memory store.
    """
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SECRET_KEY': 'test-secret',
        'WMS_SEED_DEFAULTS': False,
    })

    with app.app_context():
        db.create_all()
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def owner(client):
    """Sign up and log in the first (Owner) account."""
    client.post('/api/auth/signup', json={'email': 'owner@example.com', 'password': 'secret1', 'name': 'Owner'})
    client.post('/api/auth/login', json={'email': 'owner@example.com', 'password': 'secret1'})
    return client


def item_payload(**overrides):
    payload = {
        'name': 'Wireless Mouse',
        'category': 'Electronics',
        'subcategory': 'Accessories',
        'quantity': 5,
        'location': 'A-15',
        'brand': 'Logitech',
        'pricePerPiece': 29.99,
        'supplierId': 'SUP-003',
        'reorderLevel': 10,
    }
    payload.update(overrides)
    return payload


def test_create_item_derives_status(owner):
    """
    Test that new items get an id and a computed stock status.

    Validates:
    1. Ids are assigned sequentially (INV-001, INV-002)
    2. Quantity at or below the reorder level is Low Stock with reorderRequired
    3. Zero quantity is Critical
    4. quantityPurchased defaults to the opening quantity
    """
    resp = owner.post('/api/inventory', json=item_payload())
    assert resp.status_code == 201
    item = resp.get_json()
    assert item['id'] == 'INV-001'
    assert item['status'] == 'Low Stock'
    assert item['reorderRequired'] is True
    assert item['quantityPurchased'] == 5
    assert item['archived'] is False

    resp = owner.post('/api/inventory', json=item_payload(name='USB-C Cable', quantity=0))
    item = resp.get_json()
    assert item['id'] == 'INV-002'
    assert item['status'] == 'Critical'

    resp = owner.post('/api/inventory', json=item_payload(name='Standing Desk', quantity=100))
    assert resp.get_json()['status'] == 'In Stock'


def test_create_item_validation(owner):
    """Every invalid field is reported in one 400 response."""
    resp = owner.post('/api/inventory', json=item_payload(
        name='ab', location='A12', quantity=2.5, pricePerPiece=0, supplierId='S1'))
    assert resp.status_code == 400
    fields = resp.get_json()['fields']
    assert fields['name'] == 'Item name must be at least 3 characters'
    assert fields['location'] == 'Location must be in format A-12 (Letter-Number)'
    assert fields['quantity'] == 'Quantity must be a whole number'
    assert fields['pricePerPiece'] == 'Price per piece must be a positive number'
    assert fields['supplierId'] == 'Supplier ID must be in format SUP-001'

    # Nothing was stored
    assert owner.get('/api/inventory').get_json() == []


def test_update_recomputes_status(owner):
    """
    Test that updates recompute status and ignore a client-supplied status.

    Validates:
    1. Restocking above the reorder level gives In Stock and clears reorderRequired
    2. A status in the payload is ignored
    3. Partial validation only checks the fields sent
    """
    # *** SETUP: Low stock item ***
    owner.post('/api/inventory', json=item_payload())

    # *** TEST: Restock ***
    resp = owner.patch('/api/inventory/INV-001', json={'quantity': 50, 'status': 'Critical'})
    assert resp.status_code == 200
    item = resp.get_json()
    assert item['quantity'] == 50
    assert item['status'] == 'In Stock'
    assert item['reorderRequired'] is False

    # *** TEST: Partial validation ***
    resp = owner.patch('/api/inventory/INV-001', json={'location': 'nowhere'})
    assert resp.status_code == 400
    assert list(resp.get_json()['fields']) == ['location']


def test_get_and_delete_item(owner):
    owner.post('/api/inventory', json=item_payload())

    resp = owner.get('/api/inventory/INV-001')
    assert resp.status_code == 200
    assert resp.get_json()['name'] == 'Wireless Mouse'

    resp = owner.delete('/api/inventory/INV-001')
    assert resp.get_json() == {'id': 'INV-001', 'deleted': True}

    resp = owner.get('/api/inventory/INV-001')
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'Item not found'


def test_create_with_existing_id_conflicts(owner):
    owner.post('/api/inventory', json=item_payload(id='INV-100'))
    resp = owner.post('/api/inventory', json=item_payload(id='INV-100'))
    assert resp.status_code == 409
    assert resp.get_json()['error'] == 'Item with id INV-100 already exists'

    # Generated ids continue after the highest existing number
    resp = owner.post('/api/inventory', json=item_payload())
    assert resp.get_json()['id'] == 'INV-101'


def test_bulk_status_update_is_rejected(owner):
    """Inventory status is derived, so the bulk status action is refused."""
    owner.post('/api/inventory', json=item_payload())
    resp = owner.post('/api/inventory/bulk/status', json={'ids': ['INV-001'], 'status': 'In Stock'})
    assert resp.status_code == 400
