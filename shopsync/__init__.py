"""
Shopify data ingestion and insights backend.

Pulls customers, orders and products from each tenant's Shopify store,
persists them relationally and serves aggregated metrics.
"""

__version__ = "1.0.0"
