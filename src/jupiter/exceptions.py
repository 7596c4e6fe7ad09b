"""
Custom exceptions for the Jupiter document engine.
"""


class JupiterError(Exception):
    """Base exception for Jupiter errors"""
    pass


class DataLoadError(JupiterError):
    """Raised when a collaborator data file cannot be read or parsed"""
    pass


class ConfigurationError(JupiterError):
    """Raised when a fact map or QC rules file is malformed"""
    pass


class UnsupportedFrequencyError(JupiterError):
    """Raised when a payment or escalation frequency is not recognized"""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Unsupported frequency: {value!r}")
