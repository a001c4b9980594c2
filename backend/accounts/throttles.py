# accounts/throttles.py
"""
Rate limiting for authentication and tracking endpoints.

Rates live in settings.REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'].
"""

from rest_framework.throttling import AnonRateThrottle, UserRateThrottle


class LoginThrottle(AnonRateThrottle):
    """
    Rate limit login attempts.

    Default: 10 attempts per minute per IP.
    """
    scope = 'login'


class TrackThrottle(UserRateThrottle):
    """
    Rate limit view tracking per user (or per IP for anonymous viewers).

    Default: 120 tracked views per minute.
    """
    scope = 'track'
