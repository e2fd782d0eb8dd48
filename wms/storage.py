"""
Document storage backends.

Records are plain dicts grouped into named collections and addressed by a
string id. Two interchangeable backends implement the same surface:

- ``SqlDocumentStore``: local persistence through Flask-SQLAlchemy (one
  ``document`` table, JSON bodies). Used by default and by the tests.
- ``FirestoreDocumentStore``: a Cloud Firestore database through
  ``firebase-admin``.

Writes issued inside ``with store.batch():`` are collected and committed
together when the block exits. Reads inside the block see the committed
data with the pending writes laid over it.
"""

import copy
import logging
import os
import threading
from collections import defaultdict
from contextlib import contextmanager

import firebase_admin
from firebase_admin import credentials, firestore

from .errors import StoreConfigurationError
from .models import Document, db

logger = logging.getLogger(__name__)

# Firestore rejects write batches with more than 500 operations
FIRESTORE_BATCH_LIMIT = 500


class WriteOp:
    __slots__ = ('kind', 'collection', 'doc_id', 'data')

    def __init__(self, kind, collection, doc_id, data=None):
        self.kind = kind
        self.collection = collection
        self.doc_id = doc_id
        self.data = data


def _body(record):
    """Strip the id from a record; it is stored as the document key."""
    return {k: copy.deepcopy(v) for k, v in record.items() if k != 'id'}


def _record(op):
    """Rebuild a record (with its id) from a queued put."""
    record = copy.deepcopy(op.data)
    record['id'] = op.doc_id
    return record


class DocumentStore:
    """Common behaviour shared by the backends: batching and listeners."""

    name = 'base'

    def __init__(self):
        self._local = threading.local()
        self._listeners = defaultdict(list)

    # ---- backend hooks ----

    def _fetch_all(self, collection):
        raise NotImplementedError

    def _fetch(self, collection, doc_id):
        raise NotImplementedError

    def collections(self):
        raise NotImplementedError

    def _apply(self, ops):
        raise NotImplementedError

    # ---- public API ----

    def all(self, collection):
        pending = self._pending_for(collection)
        if not pending:
            return self._fetch_all(collection)
        records = {r['id']: r for r in self._fetch_all(collection)}
        for op in pending:
            if op.kind == 'put':
                records[op.doc_id] = _record(op)
            else:
                records.pop(op.doc_id, None)
        return [records[k] for k in sorted(records)]

    def get(self, collection, doc_id):
        for op in reversed(self._pending_for(collection)):
            if op.doc_id == doc_id:
                return _record(op) if op.kind == 'put' else None
        return self._fetch(collection, doc_id)

    def exists(self, collection, doc_id):
        return self.get(collection, doc_id) is not None

    def put(self, collection, doc_id, record):
        self._write(WriteOp('put', collection, doc_id, _body(record)))

    def delete(self, collection, doc_id):
        if not self.exists(collection, doc_id):
            return False
        self._write(WriteOp('delete', collection, doc_id))
        return True

    def clear(self, collection=None):
        names = [collection] if collection else self.collections()
        with self.batch():
            for name in names:
                for record in self.all(name):
                    self._write(WriteOp('delete', name, record['id']))

    @contextmanager
    def batch(self):
        """Group writes into one commit. Nested batches join the outer one."""
        pending = getattr(self._local, 'pending', None)
        if pending is not None:
            yield self
            return
        self._local.pending = []
        try:
            yield self
            ops = self._local.pending
        finally:
            self._local.pending = None
        if ops:
            self._commit(ops)

    def subscribe(self, collection, callback):
        """Call ``callback(records)`` after every change to ``collection``.

        Returns a function that removes the listener.
        """
        self._listeners[collection].append(callback)

        def unsubscribe():
            if callback in self._listeners[collection]:
                self._listeners[collection].remove(callback)

        return unsubscribe

    # ---- internals ----

    def _pending_for(self, collection):
        pending = getattr(self._local, 'pending', None) or ()
        return [op for op in pending if op.collection == collection]

    def _write(self, op):
        pending = getattr(self._local, 'pending', None)
        if pending is not None:
            pending.append(op)
        else:
            self._commit([op])

    def _commit(self, ops):
        self._apply(ops)
        logger.debug('%s store committed %d write(s)', self.name, len(ops))
        for name in sorted({op.collection for op in ops}):
            self._notify(name)

    def _notify(self, collection):
        listeners = list(self._listeners.get(collection, ()))
        if not listeners:
            return
        records = self.all(collection)
        for callback in listeners:
            callback(records)


class SqlDocumentStore(DocumentStore):
    """Document store backed by the ``document`` table (SQLite by default).

    Must be used inside a Flask application context.
    """

    name = 'sql'

    def _fetch_all(self, collection):
        rows = Document.query.filter_by(collection=collection).order_by(Document.doc_id).all()
        return [row.to_record() for row in rows]

    def _fetch(self, collection, doc_id):
        row = Document.query.filter_by(collection=collection, doc_id=doc_id).first()
        return row.to_record() if row is not None else None

    def collections(self):
        rows = db.session.query(Document.collection).distinct().all()
        return sorted(r[0] for r in rows)

    def _apply(self, ops):
        try:
            for op in ops:
                row = Document.query.filter_by(collection=op.collection, doc_id=op.doc_id).first()
                if op.kind == 'put':
                    if row is None:
                        db.session.add(Document(collection=op.collection, doc_id=op.doc_id, data=op.data))
                    else:
                        # Assign a new object so SQLAlchemy detects the JSON change
                        row.data = op.data
                elif row is not None:
                    db.session.delete(row)
                # Flush so later ops in the same commit see this one
                db.session.flush()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise


def init_firebase_app(credentials_path=None, project_id=None):
    """
    Initialise the default firebase-admin app once per process.

    Credential lookup order: explicit path, FIREBASE_CREDENTIALS,
    GOOGLE_APPLICATION_CREDENTIALS, serviceAccountKey.json. Without a
    credentials file the Firestore emulator is used when
    FIRESTORE_EMULATOR_HOST is set.
    """
    if firebase_admin._apps:
        return firebase_admin.get_app()

    options = {'projectId': project_id} if project_id else None
    cred_path = (
        credentials_path
        or os.getenv('FIREBASE_CREDENTIALS')
        or os.getenv('GOOGLE_APPLICATION_CREDENTIALS')
        or 'serviceAccountKey.json'
    )
    if os.path.exists(cred_path):
        logger.info('Initialising Firebase with credentials from %s', cred_path)
        return firebase_admin.initialize_app(credentials.Certificate(cred_path), options)
    if os.getenv('FIRESTORE_EMULATOR_HOST'):
        logger.info('Initialising Firebase against emulator at %s', os.getenv('FIRESTORE_EMULATOR_HOST'))
        return firebase_admin.initialize_app(options=options)
    raise StoreConfigurationError(
        'Firebase credentials not found. Set FIREBASE_CREDENTIALS or GOOGLE_APPLICATION_CREDENTIALS '
        'to a service account key file, or set FIRESTORE_EMULATOR_HOST.'
    )


class FirestoreDocumentStore(DocumentStore):
    """Document store backed by Cloud Firestore.

    ``client`` may be passed in directly; otherwise one is created on first
    use from the default firebase-admin app.
    """

    name = 'firestore'

    def __init__(self, client=None, credentials_path=None, project_id=None):
        super().__init__()
        self._client = client
        self.credentials_path = credentials_path
        self.project_id = project_id

    @property
    def client(self):
        if self._client is None:
            init_firebase_app(self.credentials_path, self.project_id)
            self._client = firestore.client()
        return self._client

    def _snapshot_to_record(self, snap):
        record = dict(snap.to_dict() or {})
        record['id'] = snap.id
        return record

    def _fetch_all(self, collection):
        records = [self._snapshot_to_record(s) for s in self.client.collection(collection).stream()]
        return sorted(records, key=lambda r: r['id'])

    def _fetch(self, collection, doc_id):
        snap = self.client.collection(collection).document(doc_id).get()
        if not snap.exists:
            return None
        return self._snapshot_to_record(snap)

    def collections(self):
        return sorted(c.id for c in self.client.collections())

    def _apply(self, ops):
        for start in range(0, len(ops), FIRESTORE_BATCH_LIMIT):
            batch = self.client.batch()
            for op in ops[start:start + FIRESTORE_BATCH_LIMIT]:
                ref = self.client.collection(op.collection).document(op.doc_id)
                if op.kind == 'put':
                    batch.set(ref, op.data)
                else:
                    batch.delete(ref)
            batch.commit()

    def subscribe(self, collection, callback):
        """Real-time listener through Firestore ``on_snapshot``."""

        def on_snapshot(snapshots, changes, read_time):
            records = sorted((self._snapshot_to_record(s) for s in snapshots), key=lambda r: r['id'])
            callback(records)

        watch = self.client.collection(collection).on_snapshot(on_snapshot)
        return watch.unsubscribe

    def _notify(self, collection):
        # Firestore pushes changes to on_snapshot listeners itself
        return None


def create_store(app):
    """Build the store selected by ``WMS_BACKEND`` ('sql' or 'firestore')."""
    backend = (app.config.get('WMS_BACKEND') or 'sql').lower()
    if backend == 'sql':
        return SqlDocumentStore()
    if backend == 'firestore':
        return FirestoreDocumentStore(
            credentials_path=app.config.get('FIREBASE_CREDENTIALS'),
            project_id=app.config.get('FIREBASE_PROJECT_ID'),
        )
    raise StoreConfigurationError(f'Unknown WMS_BACKEND "{backend}"')
