"""
Domain layer for the order lifecycle and payment reconciliation core.

This layer contains business entities, value objects, and domain logic
independent of persistence and transport concerns.
"""
