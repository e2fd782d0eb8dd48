"""
Request payload validation for the API layer.

Each ``validate_*`` function collects every field problem and raises one
``ValidationError`` whose ``errors`` maps field name to message. With
``partial=True`` only the fields present in the payload are checked
(PATCH requests).
"""

import re
from datetime import date

from .errors import ValidationError

LOCATION_RE = re.compile(r'^[A-Z]-\d+$')
SUPPLIER_ID_RE = re.compile(r'^SUP-\d+$')
DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')

MAX_PRICE = 1_000_000
MAX_REORDER_LEVEL = 10_000


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_whole(value):
    return _is_number(value) and float(value).is_integer()


def _raise_if(errors, message='Validation failed'):
    if errors:
        raise ValidationError(message, errors)


def validate_login(payload):
    errors = {}
    if not (payload.get('email') or '').strip():
        errors['email'] = 'Email is required'
    if not payload.get('password'):
        errors['password'] = 'Password is required'
    _raise_if(errors, 'Email and password are required')


def validate_inventory_item(payload, partial=False):
    errors = {}

    def present(field):
        return not partial or field in payload

    if present('name'):
        name = str(payload.get('name') or '').strip()
        if not name:
            errors['name'] = 'Item name is required'
        elif len(name) < 3:
            errors['name'] = 'Item name must be at least 3 characters'
        elif len(name) > 100:
            errors['name'] = 'Item name must be less than 100 characters'
    if present('category') and not str(payload.get('category') or '').strip():
        errors['category'] = 'Please select a valid category'
    if present('quantity'):
        quantity = payload.get('quantity')
        if not _is_whole(quantity):
            errors['quantity'] = 'Quantity must be a whole number'
        elif quantity < 0:
            errors['quantity'] = 'Quantity cannot be negative'
    if present('location'):
        location = str(payload.get('location') or '').strip()
        if not location:
            errors['location'] = 'Location is required'
        elif not LOCATION_RE.match(location):
            errors['location'] = 'Location must be in format A-12 (Letter-Number)'
    if present('brand'):
        brand = str(payload.get('brand') or '').strip()
        if not brand:
            errors['brand'] = 'Brand is required'
        elif len(brand) < 2:
            errors['brand'] = 'Brand must be at least 2 characters'
        elif len(brand) > 100:
            errors['brand'] = 'Brand must be less than 100 characters'
    if present('pricePerPiece'):
        price = payload.get('pricePerPiece')
        if not _is_number(price) or price <= 0:
            errors['pricePerPiece'] = 'Price per piece must be a positive number'
        elif price > MAX_PRICE:
            errors['pricePerPiece'] = 'Price per piece seems too high'
    if present('supplierId'):
        supplier_id = str(payload.get('supplierId') or '').strip()
        if not supplier_id:
            errors['supplierId'] = 'Supplier is required'
        elif not SUPPLIER_ID_RE.match(supplier_id):
            errors['supplierId'] = 'Supplier ID must be in format SUP-001'
    if payload.get('reorderLevel') is not None:
        level = payload['reorderLevel']
        if not _is_whole(level):
            errors['reorderLevel'] = 'Reorder level must be a whole number'
        elif level < 0:
            errors['reorderLevel'] = 'Reorder level cannot be negative'
        elif level > MAX_REORDER_LEVEL:
            errors['reorderLevel'] = 'Reorder level seems too high'
    _raise_if(errors, 'Invalid inventory item')


def validate_line_items(items, errors, field='items'):
    if not isinstance(items, list) or not items:
        errors[field] = 'At least one item is required'
        return
    for index, line in enumerate(items):
        prefix = f'{field}[{index}]'
        if not isinstance(line, dict):
            errors[prefix] = 'Line item must be an object'
            continue
        if not str(line.get('inventoryItemId') or '').strip():
            errors[f'{prefix}.inventoryItemId'] = 'Item is required'
        if not str(line.get('itemName') or '').strip():
            errors[f'{prefix}.itemName'] = 'Item name is required'
        quantity = line.get('quantity')
        if not _is_whole(quantity):
            errors[f'{prefix}.quantity'] = 'Quantity must be a whole number'
        elif quantity < 1:
            errors[f'{prefix}.quantity'] = 'Quantity must be at least 1'
        if not _is_number(line.get('unitPrice')) or line['unitPrice'] <= 0:
            errors[f'{prefix}.unitPrice'] = 'Unit price must be positive'
        if line.get('totalPrice') is not None and (not _is_number(line['totalPrice']) or line['totalPrice'] <= 0):
            errors[f'{prefix}.totalPrice'] = 'Total price must be positive'


def validate_delivery_date(value, errors, today=None):
    if value is None:
        return
    if not isinstance(value, str) or not DATE_RE.match(value):
        errors['expectedDeliveryDate'] = 'Date must be in YYYY-MM-DD format'
        return
    try:
        expected = date.fromisoformat(value)
    except ValueError:
        errors['expectedDeliveryDate'] = 'Date must be in YYYY-MM-DD format'
        return
    if expected < (today or date.today()):
        errors['expectedDeliveryDate'] = 'Expected delivery date must be today or in the future'


def validate_purchase_order(payload, partial=False, today=None):
    errors = {}
    if not partial or 'supplierId' in payload:
        supplier_id = str(payload.get('supplierId') or '').strip()
        if not supplier_id:
            errors['supplierId'] = 'Supplier is required'
        elif not SUPPLIER_ID_RE.match(supplier_id):
            errors['supplierId'] = 'Invalid supplier ID format'
    if not partial or 'supplierName' in payload:
        if not str(payload.get('supplierName') or '').strip():
            errors['supplierName'] = 'Supplier name is required'
    if not partial or 'items' in payload:
        validate_line_items(payload.get('items'), errors)
    if 'expectedDeliveryDate' in payload:
        validate_delivery_date(payload.get('expectedDeliveryDate'), errors, today)
    _raise_if(errors, 'Invalid purchase order')


def validate_sales_order(payload, partial=False):
    errors = {}
    if not partial or 'customerId' in payload:
        if not str(payload.get('customerId') or '').strip():
            errors['customerId'] = 'Customer is required'
    if not partial or 'customerName' in payload:
        if not str(payload.get('customerName') or '').strip():
            errors['customerName'] = 'Customer name is required'
    if not partial or 'items' in payload:
        validate_line_items(payload.get('items'), errors)
    if 'totalReceived' in payload and (not _is_number(payload['totalReceived']) or payload['totalReceived'] < 0):
        errors['totalReceived'] = 'Amount received cannot be negative'
    _raise_if(errors, 'Invalid sales order')


def validate_party(payload, partial=False):
    errors = {}
    if not partial or 'name' in payload:
        if not str(payload.get('name') or '').strip():
            errors['name'] = 'Name is required'
    for field in ('purchases', 'payments'):
        if field in payload and not _is_number(payload[field]):
            errors[field] = f'{field.capitalize()} must be a number'
    _raise_if(errors, 'Invalid details')


def validate_receipt(items):
    errors = {}
    if not isinstance(items, list) or not items:
        errors['items'] = 'At least one received item is required'
    else:
        for index, entry in enumerate(items):
            if not isinstance(entry, dict) or not str(entry.get('inventoryItemId') or '').strip():
                errors[f'items[{index}].inventoryItemId'] = 'Item is required'
                continue
            quantity = entry.get('quantityReceived')
            if not _is_whole(quantity) or quantity < 0:
                errors[f'items[{index}].quantityReceived'] = 'Received quantity must be a whole number'
    _raise_if(errors, 'Invalid receipt')
