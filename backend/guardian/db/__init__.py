"""
Database package
"""
from guardian.db.base import Base
from guardian.db.session import engine, SessionLocal, get_db
from guardian.db.models import *

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
]
