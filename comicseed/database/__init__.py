"""
Database package for the comic catalog.

Exposes the SeedDB manager and the generic batch upsert engine:
    from comicseed.database import SeedDB, BatchUpsertEngine
"""
from .manager import SeedDB
from .upsert import BatchUpsertEngine, UpsertResult

__all__ = ["SeedDB", "BatchUpsertEngine", "UpsertResult"]
