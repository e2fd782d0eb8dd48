# Flask Warehouse Management System
# This file contains the application factory and the JSON API routes.
# Business rules live in the wms package; routes only parse requests,
# check permissions and serialise results.

from functools import wraps
import os

from dotenv import load_dotenv  # Read FLASK_SECRET, WMS_BACKEND, ... from a .env file
from flask import Flask, g, jsonify, request, session

from wms import Services, WMSError, create_store, db
from wms.errors import NotFoundError, PermissionDeniedError, ValidationError
from wms.log import configure_logging
from wms.seed import clear_all_data, reset_to_default_data, run_migrations, seed_defaults
from wms.users import ROLE_PERMISSIONS, assignable_roles, has_permission, public_user
from wms import validation

load_dotenv()

# URL collection name -> permission resource
PERMISSION_RESOURCES = {
    'inventory': 'inventory',
    'suppliers': 'suppliers',
    'customers': 'customers',
    'orders': 'orders',
    'shipments': 'shipments',
    'purchase-orders': 'purchase_orders',
    'sales-orders': 'sales_orders',
    'cash-bank': 'payments',
    'payments': 'payments',
}

# Payload validators run before create (full) and update (partial)
PAYLOAD_VALIDATORS = {
    'inventory': validation.validate_inventory_item,
    'suppliers': validation.validate_party,
    'customers': validation.validate_party,
    'purchase-orders': validation.validate_purchase_order,
    'sales-orders': validation.validate_sales_order,
}

# Collections whose records remember who created them
TRACKS_CREATOR = ('purchase-orders', 'sales-orders', 'cash-bank', 'payments')

# Bulk action -> permission action
BULK_ACTIONS = {
    'archive': 'update',
    'restore': 'update',
    'status': 'update',
    'update': 'update',
    'delete': 'delete',
    'permanent-delete': 'delete',
}


def _env_flag(name, default):
    """Read a boolean environment variable ("1", "true", "yes", "on")."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _json_body():
    """Request JSON as a dict; anything else is a client error."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload


# ==================== APPLICATION FACTORY ====================

def create_app(test_config=None):
    """
    Application factory function that creates and configures the Flask application.

    Args:
        test_config (dict, optional): Configuration dictionary for testing.
                                    If provided, overrides default config settings.

    Returns:
        Flask: Configured Flask application instance ready to run.
    """
    app = Flask(__name__)

    # ==================== APPLICATION CONFIGURATION ====================
    # Defaults come from the environment (and .env); test_config wins over both
    # The local SQLite database is stored in the project root directory
    project_root = os.path.abspath(os.path.dirname(__file__))
    db_path = os.path.join(project_root, 'wms.db')
    app.config.from_mapping(
        SECRET_KEY=os.environ.get('FLASK_SECRET', 'dev-secret'),  # Secret key for sessions (use env var in production)
        SQLALCHEMY_DATABASE_URI=os.environ.get('DATABASE_URL', f"sqlite:///{db_path}"),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,  # Disable modification tracking for performance
        WMS_BACKEND=os.environ.get('WMS_BACKEND', 'sql'),  # 'sql' (local) or 'firestore'
        FIREBASE_CREDENTIALS=os.environ.get('FIREBASE_CREDENTIALS'),  # Service account key file for Firestore
        FIREBASE_PROJECT_ID=os.environ.get('FIREBASE_PROJECT_ID'),
        WMS_SEED_DEFAULTS=_env_flag('WMS_SEED_DEFAULTS', True),  # Load demo data into an empty store
        WMS_IMS_SYNC_ON_DELIVERY=_env_flag('WMS_IMS_SYNC_ON_DELIVERY', False),  # Push delivered SOs to IMS
        LOG_LEVEL=os.environ.get('LOG_LEVEL', 'INFO'),
    )

    # Override config with test settings if provided (useful for unit tests)
    if test_config:
        app.config.update(test_config)

    configure_logging(app.config['LOG_LEVEL'])

    # Initialize SQLAlchemy with the Flask app (local document store)
    db.init_app(app)

    # Build the document store and the entity services on top of it
    store = create_store(app)
    services = Services(store, ims_sync_on_delivery=app.config['WMS_IMS_SYNC_ON_DELIVERY'])
    app.extensions['wms'] = services

    # ==================== DATABASE INITIALIZATION ====================
    # Create tables, upgrade records saved by older versions, load demo data
    with app.app_context():
        if store.name == 'sql':
            db.create_all()
        migrated = run_migrations(store)
        if migrated:
            app.logger.info('Upgraded %d stored record(s) to the current schema', migrated)
        if app.config['WMS_SEED_DEFAULTS']:
            seed_defaults(services)

    # ==================== ERROR HANDLING ====================

    @app.errorhandler(WMSError)
    def handle_wms_error(exc):
        """Render domain errors as {"error": message} with their HTTP status."""
        if exc.status_code >= 500:
            app.logger.error('Request failed: %s', exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(404)
    def handle_not_found(exc):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(exc):
        return jsonify({'error': 'Method not allowed'}), 405

    # ==================== AUTHENTICATION & SESSION MANAGEMENT ====================

    @app.before_request
    def load_current_user():
        """
        Load the current user from session before each request.
        Makes the user record available in request context (g.current_user).
        Users who were deactivated after logging in are treated as logged out.
        """
        user_id = session.get('user_id')
        g.current_user = None
        if user_id is not None:
            user = services.users.find(user_id)
            if user is not None and user.get('status') == 'Active':
                g.current_user = user

    def login_required(fn):
        """Decorator: answer 401 unless a user is logged in."""

        @wraps(fn)
        def wrapped(*args, **kwargs):
            if g.get('current_user') is None:
                return jsonify({'error': 'Authentication required'}), 401
            return fn(*args, **kwargs)

        return wrapped

    def check_permission(permission):
        """Raise PermissionDeniedError unless the current user's role grants ``permission``."""
        if not has_permission(g.current_user.get('role'), permission):
            raise PermissionDeniedError(f'Missing permission {permission}')

    def permission_required(permission):
        """Decorator: login_required plus a role permission check."""

        def decorator(fn):
            @wraps(fn)
            @login_required
            def wrapped(*args, **kwargs):
                check_permission(permission)
                return fn(*args, **kwargs)

            return wrapped

        return decorator

    # ==================== AUTHENTICATION ROUTES ====================

    @app.route('/api/auth/signup', methods=['POST'])
    def signup():
        """
        User registration.
        The first account becomes an active Owner; later accounts wait for approval.
        """
        payload = _json_body()
        user = services.users.signup(payload.get('email'), payload.get('password'), payload.get('name', ''))
        message = ('Account created. You can log in now.' if user['status'] == 'Active'
                   else 'Account created. An administrator must approve it before you can log in.')
        return jsonify({'user': public_user(user), 'message': message}), 201

    @app.route('/api/auth/login', methods=['POST'])
    def login():
        """Authenticate with email/password and start a session."""
        payload = _json_body()
        validation.validate_login(payload)
        user = services.users.authenticate(payload.get('email'), payload.get('password'))
        session.clear()  # Clear any existing session data
        session['user_id'] = user['id']
        app.logger.info('User %s logged in', user['email'])
        return jsonify({'user': public_user(user)})

    @app.route('/api/auth/logout', methods=['POST'])
    def logout():
        """Clear the user session."""
        session.clear()
        return jsonify({'message': 'You have been logged out.'})

    @app.route('/api/auth/me')
    @login_required
    def me():
        """Current user with the permissions and assignable roles of their role."""
        user = g.current_user
        role = user.get('role')
        return jsonify({
            'user': public_user(user),
            'permissions': sorted(ROLE_PERMISSIONS.get(role, ())),
            'assignableRoles': assignable_roles(role),
        })

    # ==================== ENTITY CRUD ROUTES ====================
    # Every collection gets the same set of routes:
    #   GET    /api/<name>                    list (?archived=include|exclude|only)
    #   POST   /api/<name>                    create
    #   GET    /api/<name>/<id>               fetch one
    #   PATCH  /api/<name>/<id>               update
    #   DELETE /api/<name>/<id>               delete (subject to entity rules)
    #   POST   /api/<name>/<id>/archive       soft delete
    #   POST   /api/<name>/<id>/restore       undo soft delete
    #   DELETE /api/<name>/<id>/permanent     hard delete
    #   POST   /api/<name>/bulk/<action>      {"ids": [...], "status"?, "updates"?}

    def register_record_routes(name, service):
        resource = PERMISSION_RESOURCES[name]
        validator = PAYLOAD_VALIDATORS.get(name)

        @login_required
        def list_records():
            check_permission(f'{resource}:read')
            archived = request.args.get('archived', 'include')
            return jsonify(service.list(archived=archived))

        @login_required
        def create_record():
            check_permission(f'{resource}:create')
            payload = _json_body()
            if validator is not None:
                validator(payload)
            if name in TRACKS_CREATOR:
                payload.setdefault('createdBy', g.current_user['id'])
            return jsonify(service.create(payload)), 201

        @login_required
        def get_record(record_id):
            check_permission(f'{resource}:read')
            return jsonify(service.get(record_id))

        @login_required
        def update_record(record_id):
            check_permission(f'{resource}:update')
            payload = _json_body()
            if validator is not None:
                validator(payload, partial=True)
            return jsonify(service.update(record_id, payload))

        @login_required
        def delete_record(record_id):
            check_permission(f'{resource}:delete')
            service.delete(record_id)
            return jsonify({'id': record_id, 'deleted': True})

        @login_required
        def archive_record(record_id):
            check_permission(f'{resource}:update')
            return jsonify(service.archive(record_id))

        @login_required
        def restore_record(record_id):
            check_permission(f'{resource}:update')
            return jsonify(service.restore(record_id))

        @login_required
        def permanently_delete_record(record_id):
            check_permission(f'{resource}:delete')
            service.permanently_delete(record_id)
            return jsonify({'id': record_id, 'deleted': True})

        @login_required
        def bulk_action(action):
            if action not in BULK_ACTIONS:
                raise NotFoundError(f'Unknown bulk action "{action}"')
            check_permission(f'{resource}:{BULK_ACTIONS[action]}')
            payload = _json_body()
            ids = payload.get('ids')
            if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
                raise ValidationError('ids must be a list of record ids')

            if action == 'archive':
                result = service.bulk_archive(ids)
            elif action == 'restore':
                result = service.bulk_restore(ids)
            elif action == 'delete':
                result = service.bulk_delete(ids)
            elif action == 'permanent-delete':
                result = service.bulk_permanently_delete(ids)
            elif action == 'status':
                if not payload.get('status'):
                    raise ValidationError('status is required')
                result = service.bulk_update_status(ids, payload['status'])
            else:
                updates = payload.get('updates')
                if not isinstance(updates, dict) or not updates:
                    raise ValidationError('updates must be a non-empty object')
                if validator is not None:
                    validator(updates, partial=True)
                result = service.bulk_update(ids, updates)
            return jsonify(result.to_dict())

        endpoint = name.replace('-', '_')
        base = f'/api/{name}'
        app.add_url_rule(base, f'{endpoint}_list', list_records, methods=['GET'])
        app.add_url_rule(base, f'{endpoint}_create', create_record, methods=['POST'])
        app.add_url_rule(f'{base}/<record_id>', f'{endpoint}_get', get_record, methods=['GET'])
        app.add_url_rule(f'{base}/<record_id>', f'{endpoint}_update', update_record, methods=['PATCH'])
        app.add_url_rule(f'{base}/<record_id>', f'{endpoint}_delete', delete_record, methods=['DELETE'])
        app.add_url_rule(f'{base}/<record_id>/archive', f'{endpoint}_archive', archive_record, methods=['POST'])
        app.add_url_rule(f'{base}/<record_id>/restore', f'{endpoint}_restore', restore_record, methods=['POST'])
        app.add_url_rule(f'{base}/<record_id>/permanent', f'{endpoint}_permanent_delete',
                         permanently_delete_record, methods=['DELETE'])
        app.add_url_rule(f'{base}/bulk/<action>', f'{endpoint}_bulk', bulk_action, methods=['POST'])

    for name, service in services.records.items():
        register_record_routes(name, service)

    # ==================== PURCHASE ORDER WORKFLOW ROUTES ====================

    @app.route('/api/purchase-orders/stats')
    @permission_required('purchase_orders:read')
    def purchase_order_stats():
        """Counts per status, total value and value still awaiting delivery."""
        return jsonify(services.purchase_orders.stats())

    @app.route('/api/purchase-orders/<po_id>/submit', methods=['POST'])
    @permission_required('purchase_orders:update')
    def submit_purchase_order(po_id):
        """Draft -> Pending Approval."""
        return jsonify(services.purchase_orders.submit(po_id))

    @app.route('/api/purchase-orders/<po_id>/approve', methods=['POST'])
    @permission_required('purchase_orders:approve')
    def approve_purchase_order(po_id):
        """Pending Approval -> Approved, recording the approver."""
        return jsonify(services.purchase_orders.approve(po_id, g.current_user['id']))

    @app.route('/api/purchase-orders/<po_id>/reject', methods=['POST'])
    @permission_required('purchase_orders:approve')
    def reject_purchase_order(po_id):
        """Pending Approval -> Rejected, recording who rejected it."""
        return jsonify(services.purchase_orders.reject(po_id, g.current_user['id']))

    @app.route('/api/purchase-orders/<po_id>/order', methods=['POST'])
    @permission_required('purchase_orders:update')
    def order_purchase_order(po_id):
        """Approved -> Ordered (sent to the supplier)."""
        return jsonify(services.purchase_orders.mark_ordered(po_id))

    @app.route('/api/purchase-orders/<po_id>/cancel', methods=['POST'])
    @permission_required('purchase_orders:update')
    def cancel_purchase_order(po_id):
        return jsonify(services.purchase_orders.cancel(po_id))

    @app.route('/api/purchase-orders/<po_id>/receive', methods=['POST'])
    @permission_required('purchase_orders:receive')
    def receive_purchase_order(po_id):
        """
        Receive goods: body {"items": [{"inventoryItemId", "quantityReceived"}], "actualCost"?}.
        Adds the received quantities to inventory and advances the PO status.
        """
        payload = _json_body()
        items = payload.get('items')
        validation.validate_receipt(items)
        result = services.purchase_orders.receive(po_id, items, payload.get('actualCost'))
        return jsonify(result)

    # ==================== SALES ORDER ROUTES ====================

    @app.route('/api/sales-orders/stats')
    @permission_required('sales_orders:read')
    def sales_order_stats():
        return jsonify(services.sales_orders.stats())

    @app.route('/api/sales-orders/<so_id>/sync-ims', methods=['POST'])
    @permission_required('sales_orders:update')
    def sync_sales_order_to_ims(so_id):
        """Push the order's delivered items into the IMS product catalogue."""
        sales_order = services.sales_orders.get(so_id)
        return jsonify(services.ims_sync.sync_sales_order(sales_order))

    # ==================== PAYMENT SUMMARY ROUTES ====================

    @app.route('/api/cash-bank/summary')
    @permission_required('payments:read')
    def cash_bank_summary():
        return jsonify(services.cash_bank.summary())

    @app.route('/api/payments/summary')
    @permission_required('payments:read')
    def payments_summary():
        return jsonify(services.payments.summary())

    # ==================== CATEGORY ROUTES ====================

    @app.route('/api/categories')
    @permission_required('categories:read')
    def categories():
        return jsonify(services.categories.list())

    @app.route('/api/categories', methods=['POST'])
    @permission_required('categories:create')
    def add_category():
        payload = _json_body()
        return jsonify(services.categories.add_category(payload.get('name'))), 201

    @app.route('/api/categories/<name>', methods=['DELETE'])
    @permission_required('categories:delete')
    def delete_category(name):
        services.categories.delete_category(name)
        return jsonify({'name': name, 'deleted': True})

    @app.route('/api/categories/<name>/subcategories', methods=['POST'])
    @permission_required('categories:update')
    def add_subcategory(name):
        payload = _json_body()
        return jsonify(services.categories.add_subcategory(name, payload.get('name'))), 201

    @app.route('/api/categories/<name>/subcategories/<subcategory>', methods=['DELETE'])
    @permission_required('categories:update')
    def delete_subcategory(name, subcategory):
        return jsonify(services.categories.delete_subcategory(name, subcategory))

    # ==================== USER MANAGEMENT ROUTES ====================

    @app.route('/api/users')
    @permission_required('users:read')
    def users():
        return jsonify([public_user(u) for u in services.users.list()])

    @app.route('/api/users', methods=['POST'])
    @permission_required('users:create')
    def create_user():
        """Create an active account directly (no approval step)."""
        user = services.users.create_by(g.current_user, _json_body())
        return jsonify(public_user(user)), 201

    @app.route('/api/users/<user_id>', methods=['PATCH'])
    @permission_required('users:update')
    def update_user(user_id):
        """Change a user's role and/or status: body {"role"?, "status"?}."""
        payload = _json_body()
        if 'role' not in payload and 'status' not in payload:
            raise ValidationError('role or status is required')
        user = None
        # Both changes commit together or not at all
        with services.store.batch():
            if 'role' in payload:
                user = services.users.update_role(g.current_user, user_id, payload['role'])
            if 'status' in payload:
                user = services.users.update_status(g.current_user, user_id, payload['status'])
        return jsonify(public_user(user))

    @app.route('/api/users/<user_id>/approve', methods=['POST'])
    @permission_required('users:approve')
    def approve_user(user_id):
        return jsonify(public_user(services.users.approve(g.current_user, user_id)))

    @app.route('/api/users/<user_id>/reject', methods=['POST'])
    @permission_required('users:approve')
    def reject_user(user_id):
        return jsonify(public_user(services.users.reject(g.current_user, user_id)))

    @app.route('/api/users/<user_id>', methods=['DELETE'])
    @permission_required('users:delete')
    def delete_user(user_id):
        services.users.delete_by(g.current_user, user_id)
        return jsonify({'id': user_id, 'deleted': True})

    # ==================== REPORTS & DASHBOARD ROUTES ====================

    @app.route('/api/reports/dashboard')
    @permission_required('inventory:read')
    def dashboard():
        """
        Dashboard KPIs: inventory valuation and stock status, purchase and
        sales order figures, money received and paid.
        """
        return jsonify(services.dashboard())

    # ==================== SYSTEM MAINTENANCE ROUTES ====================

    @app.route('/api/admin/reset', methods=['POST'])
    @permission_required('system:settings')
    def reset_data():
        """
        Reset the store: body {"mode": "defaults"} reloads the demo data set,
        {"mode": "clear"} removes everything. The session is cleared either way.
        """
        mode = _json_body().get('mode', 'defaults')
        if mode == 'defaults':
            reset_to_default_data(services)
        elif mode == 'clear':
            clear_all_data(store)
        else:
            raise ValidationError('mode must be "defaults" or "clear"')
        app.logger.warning('Data reset (%s) by %s', mode, g.current_user['email'])
        session.clear()
        return jsonify({'mode': mode, 'message': 'Data reset complete. Please log in again.'})

    @app.route('/api/admin/migrate', methods=['POST'])
    @permission_required('system:settings')
    def migrate_data():
        """Run the schema migrations on demand."""
        return jsonify({'migrated': run_migrations(store)})

    # Return the configured Flask application
    return app


# ==================== APPLICATION ENTRY POINT ====================

if __name__ == '__main__':
    # Development server; only runs when this file is executed directly
    create_app().run(debug=True, host='127.0.0.1', port=5000)
