"""
API-level exceptions.
"""

from asynccoway.exceptions import CowayException


class APIException(CowayException):
    """Exception raised when the IoCare API returns unusable data."""
    pass


class ParseError(APIException):
    """Exception raised when a response body cannot be parsed."""
    pass


class DiscoveryError(APIException):
    """Exception raised when the account device listing is empty or malformed."""
    pass


class UnsupportedDeviceError(APIException):
    """Exception raised when no accessory implementation matches a device."""
    pass


class EndpointMismatchError(CowayException):
    """Exception raised when poll responses cannot be paired with endpoints.

    This signals a programming error rather than a remote failure.
    """

    def __init__(self, responses: int, endpoints: int):
        self.responses = responses
        self.endpoints = endpoints
        super().__init__(
            f"Length between responses and endpoints must be same ({responses} != {endpoints})"
        )
