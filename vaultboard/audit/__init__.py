"""Access audit trail for knowledge entries."""
