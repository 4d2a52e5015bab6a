"""Notifications domain: in-app inbox rows and their status lifecycle."""
