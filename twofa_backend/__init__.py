"""
BACKEND PACKAGE INITIALIZATION FILE

Flask HTTP surface for the twofa keychain.
"""

from .app import create_app

__all__ = ["create_app"]
