"""
User accounts, roles and permissions.

Role hierarchy: Owner > Admin > Operator > Viewer. Owners and Admins hold
every data permission; Operators and Viewers are read-only. Only Owners
manage Admins and system settings, and an Owner can never be deleted or
have their role changed.
"""

import logging
import re

from werkzeug.security import check_password_hash, generate_password_hash

from .errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError, WMSError
from .records import RecordService, utc_timestamp

logger = logging.getLogger(__name__)

OWNER = 'Owner'
ADMIN = 'Admin'
OPERATOR = 'Operator'
VIEWER = 'Viewer'
ROLES = (OWNER, ADMIN, OPERATOR, VIEWER)
ROLE_HIERARCHY = {OWNER: 4, ADMIN: 3, OPERATOR: 2, VIEWER: 1}

ACTIVE = 'Active'
PENDING = 'Pending'
INACTIVE = 'Inactive'
USER_STATUSES = (ACTIVE, PENDING, INACTIVE)

MIN_PASSWORD_LENGTH = 6
EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

CRUD_RESOURCES = ('inventory', 'orders', 'shipments', 'suppliers', 'customers',
                  'purchase_orders', 'sales_orders', 'payments', 'categories')
READ_PERMISSIONS = [f'{resource}:read' for resource in CRUD_RESOURCES]
WRITE_PERMISSIONS = [f'{resource}:{action}' for resource in CRUD_RESOURCES
                     for action in ('create', 'update', 'delete')]
USER_PERMISSIONS = ['users:read', 'users:create', 'users:update', 'users:delete', 'users:approve']

ROLE_PERMISSIONS = {
    OWNER: frozenset(READ_PERMISSIONS + WRITE_PERMISSIONS + USER_PERMISSIONS + [
        'purchase_orders:approve', 'purchase_orders:receive', 'users:manage_admins', 'system:settings',
    ]),
    ADMIN: frozenset(READ_PERMISSIONS + WRITE_PERMISSIONS + USER_PERMISSIONS + [
        'purchase_orders:approve', 'purchase_orders:receive',
    ]),
    OPERATOR: frozenset(READ_PERMISSIONS),
    VIEWER: frozenset(READ_PERMISSIONS),
}


def has_permission(role, permission):
    return permission in ROLE_PERMISSIONS.get(role, ())


def can_manage_user(manager_role, target_role):
    if manager_role == OWNER:
        return True
    return ROLE_HIERARCHY.get(manager_role, 0) > ROLE_HIERARCHY.get(target_role, 0)


def is_protected_user(target_role):
    return target_role == OWNER


def can_delete_user(manager_role, target_role):
    if is_protected_user(target_role):
        return False
    return can_manage_user(manager_role, target_role)


def can_assign_role(assigner_role, new_role):
    if assigner_role == OWNER:
        return True
    if assigner_role == ADMIN:
        return new_role in (OPERATOR, VIEWER)
    return False


def can_change_role(manager_role, target_role, new_role):
    if is_protected_user(target_role):
        return False
    return can_manage_user(manager_role, target_role) and can_assign_role(manager_role, new_role)


def assignable_roles(role):
    return [r for r in ROLES if can_assign_role(role, r)]


def public_user(user):
    """User record without the password hash."""
    return {k: v for k, v in user.items() if k != 'passwordHash'}


class UserService(RecordService):
    collection = 'users'
    prefix = 'USR'
    label = 'User'
    statuses = USER_STATUSES

    def _validate(self, email, password, name):
        errors = {}
        if not EMAIL_RE.match(email or ''):
            errors['email'] = 'Please enter a valid email address'
        if password is not None and len(password) < MIN_PASSWORD_LENGTH:
            errors['password'] = f'Password must be at least {MIN_PASSWORD_LENGTH} characters'
        if name is not None and not name.strip():
            errors['name'] = 'Name is required'
        if errors:
            raise ValidationError('Invalid user details', errors)

    def find_by_email(self, email):
        email = (email or '').strip().lower()
        for user in self.store.all(self.collection):
            if user.get('email', '').lower() == email:
                return user
        return None

    def build(self, payload):
        email = str(payload.get('email', '')).strip().lower()
        password = payload.get('password') or ''
        name = str(payload.get('name', '')).strip()
        self._validate(email, password, name)
        if self.find_by_email(email) is not None:
            raise ConflictError('An account with this email already exists')
        role = payload.get('role') or VIEWER
        status = payload.get('status') or ACTIVE
        if role not in ROLES:
            raise ValidationError(f'Invalid role "{role}"')
        self.check_status(status)
        return {
            'email': email,
            'name': name,
            'role': role,
            'status': status,
            'passwordHash': payload.get('passwordHash') or generate_password_hash(password),
            'createdAt': utc_timestamp(),
        }

    def apply_changes(self, existing, changes):
        changes = dict(changes)
        password = changes.pop('password', None)
        changes.pop('passwordHash', None)
        if 'role' in changes and changes['role'] not in ROLES:
            raise ValidationError(f'Invalid role "{changes["role"]}"')
        if 'status' in changes:
            self.check_status(changes['status'])
        merged = super().apply_changes(existing, changes)
        if password is not None:
            self._validate(merged.get('email'), password, None)
            merged['passwordHash'] = generate_password_hash(password)
        return merged

    # ---- authentication ----

    def signup(self, email, password, name):
        """Register an account. The very first account becomes an active Owner."""
        first_user = not self.store.all(self.collection)
        user = self.create({
            'email': email,
            'password': password,
            'name': name,
            'role': OWNER if first_user else VIEWER,
            'status': ACTIVE if first_user else PENDING,
        })
        logger.info('Signup for %s (%s, %s)', user['email'], user['role'], user['status'])
        return user

    def authenticate(self, email, password):
        user = self.find_by_email(email)
        if user is None or not check_password_hash(user.get('passwordHash', ''), password or ''):
            raise WMSError('Invalid email or password', status_code=401)
        if user.get('status') == PENDING:
            raise PermissionDeniedError('Your account is pending approval')
        if user.get('status') != ACTIVE:
            raise PermissionDeniedError('Your account is inactive')
        return user

    # ---- administration ----

    def _target(self, actor, user_id):
        if actor['id'] == user_id:
            raise PermissionDeniedError('You cannot change your own account here')
        target = self.find(user_id)
        if target is None:
            raise NotFoundError('User not found')
        if not can_manage_user(actor['role'], target['role']):
            raise PermissionDeniedError(f'{actor["role"]} cannot manage {target["role"]} users')
        return target

    def create_by(self, actor, payload):
        role = payload.get('role') or VIEWER
        if not can_assign_role(actor['role'], role):
            raise PermissionDeniedError(f'{actor["role"]} cannot assign the {role} role')
        return self.create(dict(payload, role=role, status=payload.get('status') or ACTIVE))

    def approve(self, actor, user_id):
        target = self._target(actor, user_id)
        logger.info('User %s approved by %s', target['email'], actor['email'])
        return self.update(user_id, {'status': ACTIVE})

    def reject(self, actor, user_id):
        target = self._target(actor, user_id)
        logger.info('User %s rejected by %s', target['email'], actor['email'])
        return self.update(user_id, {'status': INACTIVE})

    def update_role(self, actor, user_id, role):
        target = self._target(actor, user_id)
        if role not in ROLES:
            raise ValidationError(f'Invalid role "{role}"')
        if not can_change_role(actor['role'], target['role'], role):
            raise PermissionDeniedError(f'{actor["role"]} cannot change this user to {role}')
        return self.update(user_id, {'role': role})

    def update_status(self, actor, user_id, status):
        target = self._target(actor, user_id)
        self.check_status(status)
        if is_protected_user(target['role']) and status != ACTIVE:
            raise PermissionDeniedError('Owner accounts cannot be deactivated')
        return self.update(user_id, {'status': status})

    def delete_by(self, actor, user_id):
        target = self._target(actor, user_id)
        if not can_delete_user(actor['role'], target['role']):
            raise PermissionDeniedError('Owner accounts cannot be deleted')
        self.store.delete(self.collection, user_id)
        logger.info('User %s deleted by %s', target['email'], actor['email'])
