"""
SafeComms moderation API module for text and image content moderation.

This module provides async access to the SafeComms moderation and usage endpoints.
"""

from .core import (
    # Main API Client
    SafeCommsClient,

    # Request Models
    TextModerationRequest,
    ImageModerationRequest,
    ImageFileModerationRequest,

    # Data Models
    ModerationResponse,
    ModerationIssue,
    AddonUsage,
    UsageResponse,

    # Exceptions
    SafeCommsError,
    ConfigurationError,
    RequestError,
    APIError,
    FileReadError,
    SerializationError,
)

__all__ = [
    # Main API Client
    "SafeCommsClient",

    # Request Models
    "TextModerationRequest",
    "ImageModerationRequest",
    "ImageFileModerationRequest",

    # Data Models
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
