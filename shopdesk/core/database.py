"""
Database
========

Flask-SQLAlchemy handle and the three tables ShopDesk owns:

- ``documents``: JSON documents keyed by collection path and id, the
  backing table of the document store
- ``admin_accounts``: identity provider accounts with custom claims
- ``app_logs``: persisted log entries written by LoggingService
"""

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DocumentRecord(db.Model):
    __tablename__ = 'documents'

    collection = db.Column(db.String(255), primary_key=True)
    doc_id = db.Column(db.String(128), primary_key=True)
    data = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<DocumentRecord {self.collection}/{self.doc_id}>"


class AdminAccount(db.Model):
    __tablename__ = 'admin_accounts'

    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(64), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    claims = db.Column(db.JSON, nullable=False, default=dict)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_login = db.Column(db.DateTime)

    def __repr__(self):
        return f"<AdminAccount {self.email}>"


class AppLog(db.Model):
    __tablename__ = 'app_logs'

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.String(40), nullable=False, index=True)
    level = db.Column(db.String(16), nullable=False, index=True)
    source = db.Column(db.String(64), nullable=False, index=True)
    message = db.Column(db.Text, nullable=False)
    details = db.Column(db.Text)
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.Text)
    request_path = db.Column(db.Text)
    user_id = db.Column(db.String(64))
