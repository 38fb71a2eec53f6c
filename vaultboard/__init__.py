"""VaultBoard — role-gated knowledge vault for credentials, SOPs, links and documents."""

__version__ = "0.1.0"
