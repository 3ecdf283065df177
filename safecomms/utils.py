"""
Shared utilities for the SafeComms client.

This module provides the exception hierarchy, client configuration, the
response base class and the small helpers every request path relies on:
payload building, response field validation, problem-details resolution and
upload file handling.
"""

import os
import json
import logging
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Optional, Dict, Any, Tuple, Type, Union

import aiofiles

from .types import JsonDict, FilePath


# Configure logging
logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "https://api.safecomms.dev"
DEFAULT_UPLOAD_FILENAME = "image.jpg"

API_KEY_ENV = "SAFECOMMS_API_KEY"
BASE_URL_ENV = "SAFECOMMS_BASE_URL"


# ==================== Custom Exceptions ====================

class SafeCommsError(Exception):
    """Base exception for everything raised by the SafeComms client."""
    pass


class ConfigurationError(SafeCommsError):
    """Raised when the client is constructed without usable settings."""
    pass


class RequestError(SafeCommsError):
    """Raised when the HTTP call itself fails (DNS, connection, timeout)."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        original_error: Optional[BaseException] = None
    ):
        self.message = message
        self.endpoint = endpoint
        self.original_error = original_error
        super().__init__(message)


class APIError(SafeCommsError):
    """Raised when the API answers with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None
    ):
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(f"API error: {message}")


class FileReadError(APIError):
    """Raised when a local file can't be read for upload."""

    def __init__(self, path: FilePath, original_error: OSError):
        self.path = str(path)
        self.original_error = original_error
        super().__init__(f"Failed to read file: {original_error}")


class SerializationError(SafeCommsError):
    """Raised when a request can't be encoded or a response can't be decoded."""

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(f"Serialization error: {message}")


# ==================== Configuration ====================

@dataclass(frozen=True)
class ClientConfig:
    """
    Immutable client settings.

    Trailing slashes are stripped from ``base_url`` so endpoint paths can be
    appended without producing ``//``.

    Example:
        config = ClientConfig(api_key="sk_...", base_url="https://x.test/")
        config.base_url  # "https://x.test"
    """
    api_key: str = field(repr=False)
    base_url: str = DEFAULT_BASE_URL

    def __post_init__(self) -> None:
        base_url = self.base_url if self.base_url is not None else DEFAULT_BASE_URL
        object.__setattr__(self, "base_url", base_url.rstrip("/"))

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "ClientConfig":
        """
        Build a config from ``SAFECOMMS_API_KEY`` and ``SAFECOMMS_BASE_URL``.

        Raises:
            ConfigurationError: If no API key is set
        """
        environ = os.environ if environ is None else environ
        api_key = environ.get(API_KEY_ENV)
        if not api_key:
            raise ConfigurationError(f"{API_KEY_ENV} is not set")

        return cls(api_key=api_key, base_url=environ.get(BASE_URL_ENV) or DEFAULT_BASE_URL)

    def url_for(self, path: str) -> str:
        """Join an endpoint path (starting with ``/``) onto the base URL."""
        return f"{self.base_url}{path}"


# ==================== Base Response ====================

class BaseResponse:
    """Mixin for response models: wire-shaped dict and JSON export."""

    def to_dict(self) -> JsonDict:
        raise NotImplementedError

    def to_json(self, indent: Optional[int] = None) -> str:
        """
        Convert to JSON string.

        Args:
            indent: Number of spaces for indentation (None for compact JSON)

        Returns:
            JSON string representation
        """
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


# ==================== Payload Helpers ====================

def build_payload(required: JsonDict, optional: JsonDict) -> JsonDict:
    """Merge required fields with the optional ones that are not None."""
    payload = dict(required)
    for key, value in optional.items():
        if value is not None:
            payload[key] = value
    return payload


def form_value(value: Union[str, bool]) -> str:
    """String form of a multipart text field (booleans as true/false)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_json(payload: JsonDict) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Could not encode request body: {e}", original_error=e) from e


def decode_json(raw: bytes, encoding: str = "utf-8") -> Any:
    # UnicodeDecodeError is a ValueError, so bad bytes land here too
    try:
        return json.loads(raw.decode(encoding))
    except ValueError as e:
        raise SerializationError(f"Response is not valid JSON: {e}", original_error=e) from e


# ==================== Field Validation ====================

def _type_matches(value: Any, expected: Union[Type, Tuple[Type, ...]]) -> bool:
    # bool is a subclass of int, but JSON true is never a valid integer
    if isinstance(value, bool):
        expected_types = expected if isinstance(expected, tuple) else (expected,)
        return bool in expected_types
    return isinstance(value, expected)


def _type_name(expected: Union[Type, Tuple[Type, ...]]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


def require_object(data: Any, what: str) -> JsonDict:
    if not isinstance(data, dict):
        raise SerializationError(f"Expected a JSON object for {what}, got {type(data).__name__}")
    return data


def get_required(data: JsonDict, key: str, expected: Union[Type, Tuple[Type, ...]]) -> Any:
    """Return ``data[key]``, failing if it is missing, null or of the wrong type."""
    if key not in data or data[key] is None:
        raise SerializationError(f"Missing required field '{key}'")
    value = data[key]
    if not _type_matches(value, expected):
        raise SerializationError(
            f"Field '{key}' should be {_type_name(expected)}, got {type(value).__name__}"
        )
    return value


def get_optional(data: JsonDict, key: str, expected: Union[Type, Tuple[Type, ...]]) -> Any:
    """Return ``data[key]`` or None when absent or null; wrong types still fail."""
    value = data.get(key)
    if value is None:
        return None
    if not _type_matches(value, expected):
        raise SerializationError(
            f"Field '{key}' should be {_type_name(expected)}, got {type(value).__name__}"
        )
    return value


# ==================== Error Resolution ====================

def parse_problem_details(text: str) -> Optional[Dict[str, Optional[str]]]:
    """
    Parse an error body as problem details.

    Returns None unless the body is a JSON object whose ``detail`` and
    ``title`` are each absent, null or a string.
    """
    try:
        data = json.loads(text)
    except ValueError:
        return None

    if not isinstance(data, dict):
        return None

    problem: Dict[str, Optional[str]] = {}
    for key in ("detail", "title"):
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            return None
        problem[key] = value
    return problem


def resolve_error_message(status: int, reason: Optional[str], body: str) -> str:
    """
    Pick the message for a failed response.

    Order: problem ``detail``, problem ``title``, the status line. A body that
    isn't problem details yields ``"{status} - {body}"``.
    """
    problem = parse_problem_details(body)
    if problem is None:
        return f"{status} - {body}"

    if problem["detail"] is not None:
        return problem["detail"]
    if problem["title"] is not None:
        return problem["title"]
    return f"{status} {reason}" if reason else str(status)


# ==================== File Helpers ====================

def upload_filename(file_path: FilePath) -> str:
    """Final path segment of ``file_path``, or ``image.jpg`` when there is none."""
    name = PurePath(file_path).name
    if not name or name in (".", ".."):
        return DEFAULT_UPLOAD_FILENAME
    return name


async def read_file(file_path: FilePath) -> bytes:
    """
    Read a whole file into memory.

    Raises:
        FileReadError: On any OS-level failure (missing file, directory,
            permissions)
    """
    try:
        async with aiofiles.open(file_path, "rb") as f:
            content: bytes = await f.read()
    except OSError as e:
        logger.error(f"Failed to read file {file_path}: {e}")
        raise FileReadError(file_path, e) from e

    logger.debug(f"Read {len(content):,} bytes from {file_path}")
    return content
