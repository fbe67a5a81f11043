"""
Configuration-related exceptions.
"""

from asynccoway.exceptions import CowayException


class ConfigurationError(CowayException):
    """Exception raised for invalid or missing platform configuration."""
    pass
