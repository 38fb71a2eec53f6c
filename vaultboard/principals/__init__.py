"""Principals (authenticated actors) and their role assignments."""
