"""Database layer: declarative base, engine/session management, unit of work."""
