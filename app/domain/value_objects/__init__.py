"""
Value objects for the domain layer.

Value objects are immutable objects that represent concepts
with no conceptual identity, only defined by their attributes.
"""

from .money import Money
from .tracking_code import TrackingCode, business_today

__all__ = ["Money", "TrackingCode", "business_today"]
