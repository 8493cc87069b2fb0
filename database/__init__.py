"""Database module for persistent order storage."""

from database.models import Base, InvoiceModel, WorkOrderModel
from database.store import DatabaseOrderStore
from database.session import get_engine, get_session, init_db, session_scope, reset_engine

__all__ = [
    "Base",
    "InvoiceModel",
    "WorkOrderModel",
    "DatabaseOrderStore",
    "get_engine",
    "get_session",
    "session_scope",
    "init_db",
    "reset_engine",
]
