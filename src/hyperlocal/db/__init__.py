# src/hyperlocal/db/__init__.py
"""Database configuration and utilities."""

from .session import SessionLocal, commit_or_conflict, get_db

__all__ = ["commit_or_conflict", "get_db", "SessionLocal"]
