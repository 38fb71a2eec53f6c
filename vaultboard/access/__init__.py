"""Access-control decisions for knowledge entries."""
