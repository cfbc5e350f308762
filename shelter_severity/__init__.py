"""
Shelter Severity Classification Package

Household-level survey scoring and area-level severity / PIN aggregation
driven by an externally parsed calculation model.
"""

__version__ = "0.1.0"
