"""Event bus consumers."""
