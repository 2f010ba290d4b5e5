"""
Storefront backend.

Item catalogue, accounts, password reset, permissions and shopping cart,
served as a JSON mutation API.
"""

__version__ = "0.1.0"
