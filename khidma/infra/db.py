"""
Unified database infrastructure module.

All models and services import the SQLAlchemy instance from here.
"""

from khidma.database import db

__all__ = ["db"]
