"""
Type definitions for the SafeComms client.

This module provides literals, TypedDict definitions and aliases describing
the wire shapes exchanged with the SafeComms API. Keys are camelCase exactly
as the service expects them.
"""

from typing import Literal, TypedDict, List, Dict, Any, Union
from pathlib import Path

from typing_extensions import NotRequired


# ==================== Common Literals ====================

HttpMethod = Literal["GET", "POST"]
"""HTTP methods used by the client."""

BoolFormValue = Literal["true", "false"]
"""Booleans as they are sent in multipart text parts."""


# ==================== Request Payloads ====================


class TextModerationPayload(TypedDict):
    """JSON body of POST /moderation/text."""
    content: str
    language: NotRequired[str]
    replace: NotRequired[bool]
    pii: NotRequired[bool]
    replaceSeverity: NotRequired[str]
    moderationProfileId: NotRequired[str]


class ImageModerationPayload(TypedDict):
    """JSON body of POST /moderation/image."""
    image: str
    language: NotRequired[str]
    moderationProfileId: NotRequired[str]
    enableOcr: NotRequired[bool]
    enhancedOcr: NotRequired[bool]
    extractMetadata: NotRequired[bool]


# ==================== Response Payloads ====================


class ModerationIssueDict(TypedDict):
    """A single flagged term."""
    term: NotRequired[str]
    context: NotRequired[str]


class AddonUsageDict(TypedDict):
    """Which redaction addons were applied."""
    replacedUnsafe: bool
    replacedPii: bool


class ModerationResponseDict(TypedDict):
    """Response of every moderation endpoint."""
    isClean: bool
    severity: NotRequired[str]
    categoryScores: NotRequired[Dict[str, str]]
    issues: NotRequired[List[ModerationIssueDict]]
    reason: NotRequired[str]
    isBypassAttempt: bool
    safeContent: NotRequired[str]
    addons: NotRequired[AddonUsageDict]


class UsageResponseDict(TypedDict):
    """Response of GET /usage."""
    tier: str
    rateLimit: int
    tokenLimit: NotRequired[int]
    tokensUsed: int
    remainingTokens: int


class ProblemDetailsDict(TypedDict):
    """Error body returned on non-2xx responses (subset of RFC 7807)."""
    detail: NotRequired[str]
    title: NotRequired[str]


# ==================== Type Aliases ====================

JsonDict = Dict[str, Any]
"""JSON dictionary type."""

Headers = Dict[str, str]
"""HTTP headers dictionary."""

FilePath = Union[str, Path]
"""Local file path accepted by upload calls."""


# ==================== Exports ====================

__all__ = [
    # Literals
    "HttpMethod",
    "BoolFormValue",

    # TypedDict
    "TextModerationPayload",
    "ImageModerationPayload",
    "ModerationIssueDict",
    "AddonUsageDict",
    "ModerationResponseDict",
    "UsageResponseDict",
    "ProblemDetailsDict",

    # Type Aliases
    "JsonDict",
    "Headers",
    "FilePath",
]
