"""Database access: declarative base, sessions, record store, redis."""
