"""
Checkout API: order reconciliation and invoice readiness for paid checkouts.
"""
__version__ = "1.0.0"
