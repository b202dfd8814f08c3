"""
orderrecon: resumable consolidation of Shopify and Squarespace order exports
into one canonical, de-duplicated order-line table (All_Orders_Clean).
"""

from .clean_master import BuildResult, CleanMasterBuilder, build_all_orders_clean

__version__ = "0.1.0"

__all__ = ["BuildResult", "CleanMasterBuilder", "build_all_orders_clean", "__version__"]
