"""
Exceptions for the asynccoway package.
"""


class CowayException(Exception):
    """Base exception for all asynccoway errors."""
    pass
