"""
Fence Pricing Package

Price resolution for the field-service operations app.
Resolves SKU prices using Community Override → Rate Sheet cascade → Catalog fallback.
"""

__version__ = "1.0.0"
