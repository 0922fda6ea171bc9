"""
Bulk row insertion toolkit.

Loads the same generated message dataset with progressively faster
techniques: per-row ORM commits, looped ORM inserts, bulk mappings,
Core executemany, chunked commits and PostgreSQL COPY (binary and CSV).
"""

__version__ = "0.1.0"
