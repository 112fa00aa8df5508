"""Persistent stores (settings, session history)."""
