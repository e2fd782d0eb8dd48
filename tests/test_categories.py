"""
CATEGORY TESTS
Tests for the category / subcategory catalogue used by inventory items.
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


def test_default_categories(client):
    categories = client.get('/api/categories').get_json()
    assert [c['name'] for c in categories] == ['Clothing', 'Electronics', 'Food & Beverages', 'Furniture']
    furniture = categories[3]
    assert furniture['subcategories'] == ['Desks', 'Chairs', 'Cabinets', 'Shelving']


def test_add_and_remove_category(client):
    """
    Test the category lifecycle.

    Validates:
    1. New categories start without subcategories
    2. Duplicate names are refused regardless of case
    3. Subcategories are added, de-duplicated and removed
    4. Deleting a missing category is a 404
    """
    resp = client.post('/api/categories', json={'name': 'Tools'})
    assert resp.status_code == 201
    assert resp.get_json() == {'name': 'Tools', 'subcategories': []}

    resp = client.post('/api/categories', json={'name': 'electronics'})
    assert resp.status_code == 409
    assert resp.get_json()['error'] == 'Category "electronics" already exists'

    resp = client.post('/api/categories/Tools/subcategories', json={'name': 'Drills'})
    assert resp.get_json()['subcategories'] == ['Drills']
    resp = client.post('/api/categories/Tools/subcategories', json={'name': 'drills'})
    assert resp.status_code == 409
    assert resp.get_json()['error'] == 'Subcategory "drills" already exists in "Tools"'

    resp = client.delete('/api/categories/Tools/subcategories/Drills')
    assert resp.get_json()['subcategories'] == []

    assert client.delete('/api/categories/Tools').get_json() == {'name': 'Tools', 'deleted': True}
    resp = client.delete('/api/categories/Tools')
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'Category "Tools" not found'


def test_category_name_rules(client):
    assert client.post('/api/categories', json={'name': '   '}).status_code == 400
    assert client.post('/api/categories', json={'name': 'Parts/Spares'}).status_code == 400
    assert client.post('/api/categories/Nope/subcategories', json={'name': 'X'}).status_code == 404
