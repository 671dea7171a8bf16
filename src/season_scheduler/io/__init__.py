"""Serialization and file storage."""
