"""
Payment services: gateway clients, reconciliation engine and webhook settlement.
"""
