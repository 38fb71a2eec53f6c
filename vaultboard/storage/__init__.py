"""Blob storage for files attached to knowledge entries."""
