# Pricing Campaign Service Contracts

"""
Pricing Campaign Service Contract Module

This module contains:
- data_contract.py: Model re-exports, reference catalogs and test data factories
"""
