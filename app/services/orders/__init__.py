"""
Order services package.

This package contains the catalog, customer, ledger and status services
plus the placement, fulfillment and admin coordinators built on them,
following SOLID principles for better maintainability.
"""
