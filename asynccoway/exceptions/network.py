"""
Network-related exceptions.
"""

from asynccoway.exceptions import CowayException


class NetworkException(CowayException):
    """Exception raised for network-related errors."""
    pass


class NetworkConnectionError(NetworkException):
    """Exception raised when the IoCare API cannot be reached."""
    pass


class NetworkTimeoutError(NetworkException):
    """Exception raised when a request to the IoCare API times out."""
    pass


class ResponseError(NetworkException):
    """Exception raised when a response from the IoCare API indicates an error."""

    def __init__(self, status_code, message=None):
        """Initialize the exception with a status code and optional message.

        Args:
            status_code: HTTP status code
            message: Optional error message
        """
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP error {status_code}{': ' + message if message else ''}")
