"""
                Food Delivery Backend

Accounts, restaurants and dishes, and an order lifecycle with
role-gated status transitions, driver matching and real-time
order notifications.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
