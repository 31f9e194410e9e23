"""Persistence for the progress engine (async SQLAlchemy)."""
