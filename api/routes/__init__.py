"""API Routes Package."""

from api.routes import health, invoices, metrics, vat

__all__ = [
    "health",
    "invoices",
    "metrics",
    "vat",
]
