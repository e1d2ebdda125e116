"""
                Food Ordering API

REST backend for a food-ordering platform: users, authentication,
restaurants with menus, and orders, with role- and ownership-based
authorization.

Author: Khalil_Bannouri
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Khalil_Bannouri"
