"""
Error types raised by the scoring engine and the data providers
"""
from typing import Optional


class LivabilityError(Exception):
    """Base class for every error raised by this package"""


class InvalidInput(LivabilityError, ValueError):
    """Bad coordinates, radius, weights or configuration values"""


class ProviderError(LivabilityError):
    """An upstream data provider failed or returned malformed data"""

    def __init__(self, message: str, provider: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class ProviderTimeout(ProviderError):
    """An upstream data provider did not answer in time"""


class SafetyDataUnavailable(ProviderError):
    """No safety source could produce a reading for the requested city"""
