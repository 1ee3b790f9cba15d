"""
Core domain models, decimal primitives, errors and contracts.

This module contains the foundational building blocks that are independent
of external systems (databases, HTTP, message buses).
"""
