"""Payments: gateway intents, callback verification and refunds."""
