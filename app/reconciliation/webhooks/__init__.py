"""
Inbound provider endpoints: signed webhooks and browser redirect callbacks.
"""
