"""
Rackspace cloud provider interface.

`Cloud` is the operation surface; the errors are re-exported so callers do
not need to know the module layout.
"""

from .cloud import Cloud
from .errors import (
    CloudError,
    ConfigurationError,
    CpiError,
    NotFoundError,
    NotSupported,
    RateLimitError,
    RegistryError,
    StateError,
    TimeoutError,
    VMCreationFailed,
)

__all__ = [
    "Cloud",
    "CloudError",
    "ConfigurationError",
    "CpiError",
    "NotFoundError",
    "NotSupported",
    "RateLimitError",
    "RegistryError",
    "StateError",
    "TimeoutError",
    "VMCreationFailed",
]
