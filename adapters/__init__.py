"""
Adapters package - External service connections.
MongoDB catalog, Moyasar invoices and the push gateway.
"""

from adapters import catalog_adapter, moyasar_client, push_adapter

__all__ = [
    "catalog_adapter",
    "moyasar_client",
    "push_adapter",
]
