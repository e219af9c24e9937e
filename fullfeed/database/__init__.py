"""SQLite storage primitives and data models."""
