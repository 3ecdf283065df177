"""
SafeComms - async Python client for the SafeComms content moderation API
"""

__version__ = "0.1.0"

# Import shared configuration
from .utils import ClientConfig, DEFAULT_BASE_URL

# Expose main APIs at the package root
from .moderation import (
    SafeCommsClient,
    TextModerationRequest,
    ImageModerationRequest,
    ImageFileModerationRequest,
    ModerationResponse,
    ModerationIssue,
    AddonUsage,
    UsageResponse,
    SafeCommsError,
    ConfigurationError,
    RequestError,
    APIError,
    FileReadError,
    SerializationError,
)

__all__ = [
    "__version__",

    # Configuration
    "ClientConfig",
    "DEFAULT_BASE_URL",

    # Client
    "SafeCommsClient",

    # Requests
    "TextModerationRequest",
    "ImageModerationRequest",
    "ImageFileModerationRequest",

    # Responses
    "ModerationResponse",
    "ModerationIssue",
    "AddonUsage",
    "UsageResponse",

    # Exceptions
    "SafeCommsError",
    "ConfigurationError",
    "RequestError",
    "APIError",
    "FileReadError",
    "SerializationError",
]
