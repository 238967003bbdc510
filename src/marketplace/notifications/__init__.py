"""Notifications: best-effort email/SMS and realtime fan-out of order changes."""
