"""
MFA service - TOTP second factor, recovery codes and attempt rate limiting
"""

