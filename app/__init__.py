"""
                Catalog Resolution Service

Computes the effective, per-branch, tax-inclusive menu view of a
multi-tenant food-ordering platform by resolving restaurant, branch,
product and branch-product configuration into one catalog document.

Version: 1.0.0
"""

__version__ = "1.0.0"
