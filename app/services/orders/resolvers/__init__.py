"""Resolver services for identity lookups."""

from .customer_registry import CustomerRegistry

__all__ = ["CustomerRegistry"]
