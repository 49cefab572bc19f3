"""
ShopDesk Modules
================

Flask blueprint modules for the admin back office.
"""

__all__ = ['auth', 'dashboard', 'orders', 'products']
