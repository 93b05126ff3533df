"""
A typed client for the Bitcoin Hardware Wallet Interface.
"""

__version__ = "0.1.0"
