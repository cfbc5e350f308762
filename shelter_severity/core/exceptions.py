"""
Exceptions raised by the severity engine
"""


class SeverityEngineError(Exception):
    """Base exception for the severity engine"""
    pass


class ConfigurationError(SeverityEngineError):
    """Exception raised when a calculation model cannot be used for a run.

    Raised before any household is processed: an empty decision tree, a pillar
    missing from the core indicators, or a payload that fails schema validation.
    """

    def __init__(self, message: str, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])
