# Database models for the local (SQLite) document store

from flask_sqlalchemy import SQLAlchemy

# Initialize SQLAlchemy database instance
# Bound to the Flask app inside create_app
db = SQLAlchemy()


class Document(db.Model):
    """
    A single stored record.

    All collections share this table. The record body is kept as JSON so
    records written by older versions load unchanged and are upgraded by
    the per-collection migration functions.
    """
    __tablename__ = 'document'
    __table_args__ = (
        db.UniqueConstraint('collection', 'doc_id', name='uq_document_collection_doc_id'),
    )

    id = db.Column(db.Integer, primary_key=True)
    collection = db.Column(db.String(64), nullable=False, index=True)  # e.g. 'inventory', 'purchase_orders'
    doc_id = db.Column(db.String(120), nullable=False)  # Human-readable id (INV-001, PO-003, ...)
    data = db.Column(db.JSON, nullable=False, default=dict)  # Record fields except the id
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())

    def to_record(self):
        record = dict(self.data or {})
        record['id'] = self.doc_id
        return record

    def __repr__(self):
        return f'<Document {self.collection}/{self.doc_id}>'
