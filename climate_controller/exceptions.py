class ClimateControllerError(Exception):
    """Base exception for climate controller errors."""


class RequestError(ClimateControllerError):
    """Raised for unexpected HTTP responses from an output endpoint."""


class EndpointNotConfigured(ClimateControllerError):
    """Raised when an endpoint needed for an output is not configured."""
