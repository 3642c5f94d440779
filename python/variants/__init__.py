"""
Variant plugin entrypoints.
"""

from variants.base import BaseVariantPlugin, SampleQuestion, VariantPlugin
from variants.registry import available_variants, load_variant

__all__ = [
    "BaseVariantPlugin",
    "SampleQuestion",
    "VariantPlugin",
    "available_variants",
    "load_variant",
]
