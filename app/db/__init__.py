"""
Database module - MongoDB store handle.
"""
from app.db.mongodb import MongoStore, connect_store, get_store

__all__ = [
    "MongoStore",
    "connect_store",
    "get_store",
]
