"""
Engine Errors
"""


class IntegrityEngineError(Exception):
    """Base class for integrity engine errors"""


class ConfigurationError(IntegrityEngineError):
    """Raised at construction when a policy names an unknown kind or severity"""


class InvalidRemoteScoreError(IntegrityEngineError, ValueError):
    """Raised when a remote-reported score cannot be reconciled"""


class RemoteDeliveryError(IntegrityEngineError):
    """Raised by the report client on transport failure or non-2xx status"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
