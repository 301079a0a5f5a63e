"""Shared helpers: the Gmail REST client and encrypted column type."""
