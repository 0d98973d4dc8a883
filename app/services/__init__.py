"""
                        Services Module

Contains the catalog resolution services with the hybrid architecture
pattern: an in-memory source for development and a PostgreSQL source for
staging/production, behind one factory.

Services:
    - catalog: Tax, option, combo and branch product resolution
"""

from app.services.catalog import get_catalog_assembler, get_catalog_source

__all__ = ["get_catalog_assembler", "get_catalog_source"]
