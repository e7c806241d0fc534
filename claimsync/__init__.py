"""
ClaimSync.

Role and claims propagation core for the site-management platform.
Server-side triggers keep user profile documents, the first-user
counter, and identity-provider token claims consistent.
"""

__version__ = "0.1.0"
