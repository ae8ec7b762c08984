"""
Catalog Synchronization Engine

Reconciles category, manufacturer, attribute and product data pulled from
external providers into one canonical catalog.
"""

__version__ = "1.0.0"
__author__ = "Catalog Team"
__email__ = "team@company.com"
__description__ = "External catalog reconciliation and chunked synchronization engine"

__all__ = [
    "__version__",
    "__author__",
    "__email__",
    "__description__",
]
