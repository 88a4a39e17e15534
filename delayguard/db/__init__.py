"""
DelayGuard database module.

Connection management, table definitions and repositories, built on
SQLAlchemy Core and the Cloud SQL Python Connector.
"""

from delayguard.db.connection import DatabaseConnection
from delayguard.db.unit_of_work import UnitOfWork

__all__ = ["DatabaseConnection", "UnitOfWork"]
