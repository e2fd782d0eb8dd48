"""
RECORD MANAGEMENT TESTS
Tests for the archive, restore and bulk operations shared by every collection.

This test module covers:
- Archive / restore and the archived list filter
- Permanent deletion
- Bulk archive, status update, update and delete with per-id tallies
- Supplier and customer balance recomputation
- Order and shipment ids and currency formatting
"""

import pytest

from app import create_app, db


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SECRET_KEY': 'test-secret',
    })
    with app.app_context():
        db.create_all()
        yield app


@pytest.fixture
def client(app):
    client = app.test_client()
    client.post('/api/auth/login', json={'email': 'admin@wms.com', 'password': 'admin123'})
    return client


def ids(records):
    return [r['id'] for r in records]


def test_archive_and_restore(client):
    """
    Test soft deletion.

    Validates:
    1. Archiving sets archived and archivedAt
    2. The archived filter includes, excludes or isolates archived records
    3. Restoring clears the flag and the timestamp
    """
    # *** TEST: Archive ***
    supplier = client.post('/api/suppliers/SUP-001/archive').get_json()
    assert supplier['archived'] is True
    assert supplier['archivedAt'].endswith('Z')

    assert 'SUP-001' in ids(client.get('/api/suppliers').get_json())
    assert 'SUP-001' not in ids(client.get('/api/suppliers?archived=exclude').get_json())
    assert ids(client.get('/api/suppliers?archived=only').get_json()) == ['SUP-001']

    # *** TEST: Restore ***
    supplier = client.post('/api/suppliers/SUP-001/restore').get_json()
    assert supplier['archived'] is False
    assert 'archivedAt' not in supplier
    assert client.get('/api/suppliers?archived=only').get_json() == []


def test_invalid_archived_filter(client):
    resp = client.get('/api/customers?archived=maybe')
    assert resp.status_code == 400


def test_permanent_delete(client):
    assert client.delete('/api/orders/ORD-1234/permanent').get_json() == {'id': 'ORD-1234', 'deleted': True}
    assert client.get('/api/orders/ORD-1234').status_code == 404
    assert client.delete('/api/orders/ORD-1234/permanent').status_code == 404


def test_bulk_archive_counts_missing_ids(client):
    resp = client.post('/api/customers/bulk/archive', json={'ids': ['CUS-001', 'CUS-002', 'CUS-404']})
    result = resp.get_json()
    assert result['successCount'] == 2
    assert result['failedCount'] == 1
    assert result['errors'] == ['Customer CUS-404 not found']
    assert result['success'] is False

    archived = ids(client.get('/api/customers?archived=only').get_json())
    assert archived == ['CUS-001', 'CUS-002']

    resp = client.post('/api/customers/bulk/restore', json={'ids': ['CUS-001', 'CUS-002']})
    assert resp.get_json() == {'success': True, 'successCount': 2, 'failedCount': 0, 'errors': []}


def test_bulk_delete_counts_repeated_ids_once(client):
    resp = client.post('/api/orders/bulk/delete', json={'ids': ['ORD-1235', 'ORD-1235', 'ORD-1236']})
    assert resp.get_json() == {'success': True, 'successCount': 2, 'failedCount': 0, 'errors': []}
    assert client.get('/api/orders/ORD-1235').status_code == 404


def test_bulk_status_update(client):
    """
    Test bulk status changes.

    Validates:
    1. Every listed shipment gets the new status
    2. A status outside the collection's set is refused as a whole
    """
    resp = client.post('/api/shipments/bulk/status', json={'ids': ['SHIP-5678', 'SHIP-5682'], 'status': 'Delivered'})
    assert resp.get_json()['successCount'] == 2
    assert client.get('/api/shipments/SHIP-5682').get_json()['status'] == 'Delivered'

    resp = client.post('/api/shipments/bulk/status', json={'ids': ['SHIP-5678'], 'status': 'Lost'})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Invalid status "Lost". Expected one of: Pending, Processing, In Transit, Delivered'

    resp = client.post('/api/suppliers/bulk/status', json={'ids': ['SUP-001', 'SUP-002'], 'status': 'Inactive'})
    assert resp.get_json()['successCount'] == 2


def test_bulk_update(client):
    resp = client.post('/api/orders/bulk/update', json={'ids': ['ORD-1235', 'ORD-1236'], 'updates': {'items': 3}})
    assert resp.get_json()['successCount'] == 2
    assert client.get('/api/orders/ORD-1236').get_json()['items'] == 3

    resp = client.post('/api/orders/bulk/update', json={'ids': ['ORD-1235'], 'updates': {}})
    assert resp.status_code == 400


def test_bulk_request_errors(client):
    resp = client.post('/api/orders/bulk/explode', json={'ids': ['ORD-1235']})
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'Unknown bulk action "explode"'

    resp = client.post('/api/orders/bulk/archive', json={'ids': 'ORD-1235'})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'ids must be a list of record ids'


def test_party_balance_is_recomputed(client):
    """balance = purchases - payments on create and on every update."""
    supplier = client.patch('/api/suppliers/SUP-001', json={'payments': 125000}).get_json()
    assert supplier['balance'] == 0

    resp = client.post('/api/customers', json={'name': 'New Retailer', 'purchases': 1000, 'payments': 250})
    assert resp.status_code == 201
    customer = resp.get_json()
    assert customer['id'] == 'CUS-006'
    assert customer['status'] == 'Active'
    assert customer['balance'] == 750

    resp = client.post('/api/customers', json={'name': ''})
    assert resp.status_code == 400


def test_order_and_shipment_ids(client):
    """Orders and shipments use four-digit ids continuing from the highest existing one."""
    order = client.post('/api/orders', json={'customer': 'Acme Corp', 'items': 2, 'total': '$120'}).get_json()
    assert order['id'] == 'ORD-1241'
    # Totals are shown in pesos
    assert order['total'] == '₱120'

    shipment = client.post('/api/shipments', json={'orderId': 'ORD-1241', 'destination': 'Cebu', 'carrier': 'LBC'}).get_json()
    assert shipment['id'] == 'SHIP-5684'
    assert shipment['status'] == 'Pending'


def test_viewer_roles_cannot_write(client):
    """The Operator account is read-only across collections."""
    client.post('/api/auth/logout')
    client.post('/api/auth/login', json={'email': 'user@wms.com', 'password': 'user123'})

    assert client.get('/api/shipments').status_code == 200
    assert client.post('/api/shipments/bulk/delete', json={'ids': ['SHIP-5678']}).status_code == 403
    assert client.post('/api/suppliers/SUP-001/archive').status_code == 403
