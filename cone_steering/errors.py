"""
Exceptions raised at the collaborator boundary (configuration, resource attach).
"""


class ConeSteeringError(Exception):
    """Base class for all cone steering errors."""


class ConfigurationError(ConeSteeringError):
    """Missing mandatory parameter or malformed configuration."""


class AttachError(ConeSteeringError):
    """Shared memory region is missing or too small for the declared frame."""
