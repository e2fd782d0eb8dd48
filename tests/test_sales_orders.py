"""
SALES ORDER TESTS
Tests for sales order totals, balances, receipt status and statistics.

This test module covers:
- Creating sales orders with computed totals and receipt status
- Receipt status following the amount received
- Shipping status validation and bulk shipping updates
- Permanent deletion only after archiving
- Sales order statistics over the default data set
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


def laptop_order(**overrides):
    payload = {
        'customerId': 'CUS-001',
        'customerName': 'Acme Corp',
        'items': [{'inventoryItemId': 'INV-001', 'itemName': 'Laptop Computer', 'quantity': 2, 'unitPrice': 1000}],
    }
    payload.update(overrides)
    return payload


def test_create_sales_order(client):
    """
    Test sales order creation.

    Validates:
    1. Id continues after SO-005
    2. Total, balance and receipt status are computed
    3. Nothing is shipped yet
    """
    resp = client.post('/api/sales-orders', json=laptop_order(totalReceived=500))
    assert resp.status_code == 201
    so = resp.get_json()
    assert so['id'] == 'SO-006'
    assert so['totalAmount'] == 2000
    assert so['soBalance'] == 1500
    assert so['receiptStatus'] == 'Partially Paid'
    assert so['shippingStatus'] == 'Pending'
    assert so['items'][0]['quantityShipped'] == 0
    assert so['createdBy'] == '1'

    so = client.post('/api/sales-orders', json=laptop_order(totalReceived=2000)).get_json()
    assert so['receiptStatus'] == 'Paid'

    so = client.post('/api/sales-orders', json=laptop_order()).get_json()
    assert so['receiptStatus'] == 'Unpaid'


def test_receipt_status_follows_payments(client):
    so = client.patch('/api/sales-orders/SO-003', json={'totalReceived': 1000}).get_json()
    assert so['receiptStatus'] == 'Partially Paid'
    assert so['soBalance'] == 999.25

    so = client.patch('/api/sales-orders/SO-003', json={'totalReceived': 1999.25}).get_json()
    assert so['receiptStatus'] == 'Paid'
    assert so['soBalance'] == 0

    # An overdue order with nothing received stays overdue
    so = client.patch('/api/sales-orders/SO-005', json={'totalReceived': 0}).get_json()
    assert so['receiptStatus'] == 'Overdue'


def test_invalid_statuses_are_rejected(client):
    resp = client.patch('/api/sales-orders/SO-002', json={'shippingStatus': 'Teleported'})
    assert resp.status_code == 400

    resp = client.post('/api/sales-orders', json=laptop_order(receiptStatus='Maybe'))
    assert resp.status_code == 400

    resp = client.post('/api/sales-orders', json={'items': []})
    assert resp.status_code == 400
    assert set(resp.get_json()['fields']) == {'customerId', 'customerName', 'items'}


def test_bulk_shipping_status(client):
    resp = client.post('/api/sales-orders/bulk/status', json={'ids': ['SO-002', 'SO-003'], 'status': 'Shipped'})
    assert resp.get_json()['successCount'] == 2
    assert client.get('/api/sales-orders/SO-003').get_json()['shippingStatus'] == 'Shipped'


def test_bulk_permanent_delete_requires_archive(client):
    """
    Test that only archived sales orders are permanently deleted in bulk.

    SO-003 is archived first; SO-002 is still active and is reported.
    """
    client.post('/api/sales-orders/SO-003/archive')

    resp = client.post('/api/sales-orders/bulk/permanent-delete', json={'ids': ['SO-003', 'SO-002']})
    result = resp.get_json()
    assert result['successCount'] == 1
    assert result['errors'] == ['Sales Order SO-002: must be archived before permanent deletion']

    assert client.get('/api/sales-orders/SO-003').status_code == 404
    assert client.get('/api/sales-orders/SO-002').status_code == 200


def test_sales_order_stats(client):
    stats = client.get('/api/sales-orders/stats').get_json()
    assert stats['totalOrders'] == 5
    assert stats['totalValue'] == 54371.8
    assert stats['totalReceived'] == 36887.8
    assert stats['outstandingBalance'] == 17484.0
    assert stats['collectionRate'] == 68
    assert stats['unpaid'] == 1
    assert stats['partiallyPaid'] == 1
    assert stats['paid'] == 2
    assert stats['overdue'] == 1
