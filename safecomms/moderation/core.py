"""
SafeComms moderation API wrapper.

This module provides a simple async interface to the SafeComms content
moderation service: text moderation, image moderation (inline or uploaded
from disk) and usage/quota reporting.
"""

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple, Type, TypeVar

import aiohttp

from ..types import (
    JsonDict,
    Headers,
    FilePath,
    HttpMethod,
    TextModerationPayload,
    ImageModerationPayload,
)
from ..utils import (
    ClientConfig,
    BaseResponse,
    SafeCommsError,
    ConfigurationError,
    RequestError,
    APIError,
    FileReadError,
    SerializationError,
    build_payload,
    form_value,
    encode_json,
    decode_json,
    require_object,
    get_required,
    get_optional,
    resolve_error_message,
    upload_filename,
    read_file,
)

# Configure logging
logger = logging.getLogger(__name__)


# ==================== Request Models ====================

@dataclass
class TextModerationRequest:
    """Body of a text moderation call."""
    content: str
    language: Optional[str] = None
    replace: Optional[bool] = None
    pii: Optional[bool] = None
    replace_severity: Optional[str] = None
    moderation_profile_id: Optional[str] = None

    def to_payload(self) -> TextModerationPayload:
        payload: TextModerationPayload = {"content": self.content}
        if self.language is not None:
            payload["language"] = self.language
        if self.replace is not None:
            payload["replace"] = self.replace
        if self.pii is not None:
            payload["pii"] = self.pii
        if self.replace_severity is not None:
            payload["replaceSeverity"] = self.replace_severity
        if self.moderation_profile_id is not None:
            payload["moderationProfileId"] = self.moderation_profile_id
        return payload


@dataclass
class ImageModerationRequest:
    """
    Body of an inline image moderation call.

    ``image`` is whatever the API accepts inline: a base64 string or a URL.
    """
    image: str
    language: Optional[str] = None
    moderation_profile_id: Optional[str] = None
    enable_ocr: Optional[bool] = None
    enhanced_ocr: Optional[bool] = None
    extract_metadata: Optional[bool] = None

    def to_payload(self) -> ImageModerationPayload:
        payload: ImageModerationPayload = {"image": self.image}
        if self.language is not None:
            payload["language"] = self.language
        if self.moderation_profile_id is not None:
            payload["moderationProfileId"] = self.moderation_profile_id
        if self.enable_ocr is not None:
            payload["enableOcr"] = self.enable_ocr
        if self.enhanced_ocr is not None:
            payload["enhancedOcr"] = self.enhanced_ocr
        if self.extract_metadata is not None:
            payload["extractMetadata"] = self.extract_metadata
        return payload


@dataclass
class ImageFileModerationRequest:
    """Multipart upload of a local image file."""
    file_path: FilePath
    language: Optional[str] = None
    moderation_profile_id: Optional[str] = None
    enable_ocr: Optional[bool] = None
    enhanced_ocr: Optional[bool] = None
    extract_metadata: Optional[bool] = None

    @property
    def upload_filename(self) -> str:
        return upload_filename(self.file_path)

    @property
    def content_type(self) -> str:
        guessed, _ = mimetypes.guess_type(self.upload_filename)
        return guessed or "application/octet-stream"

    def to_form_fields(self) -> List[Tuple[str, str]]:
        """Present optional fields as (name, text) pairs, in wire order."""
        fields = [
            ("language", self.language),
            ("moderationProfileId", self.moderation_profile_id),
            ("enableOcr", self.enable_ocr),
            ("enhancedOcr", self.enhanced_ocr),
            ("extractMetadata", self.extract_metadata),
        ]
        return [(name, form_value(value)) for name, value in fields if value is not None]

    def to_form_data(self, file_content: bytes) -> aiohttp.FormData:
        form = aiohttp.FormData()
        form.add_field(
            "image",
            file_content,
            filename=self.upload_filename,
            content_type=self.content_type
        )
        for name, value in self.to_form_fields():
            form.add_field(name, value)
        return form


# ==================== Response Models ====================

@dataclass
class ModerationIssue(BaseResponse):
    """A term the service flagged, with surrounding context."""
    term: Optional[str] = None
    context: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ModerationIssue":
        data = require_object(data, "issue")
        return cls(
            term=get_optional(data, "term", str),
            context=get_optional(data, "context", str)
        )

    def to_dict(self) -> JsonDict:
        return build_payload({}, {"term": self.term, "context": self.context})


@dataclass
class AddonUsage(BaseResponse):
    """Whether unsafe content or PII was replaced in ``safe_content``."""
    replaced_unsafe: bool
    replaced_pii: bool

    @classmethod
    def from_dict(cls, data: Any) -> "AddonUsage":
        data = require_object(data, "addons")
        return cls(
            replaced_unsafe=get_required(data, "replacedUnsafe", bool),
            replaced_pii=get_required(data, "replacedPii", bool)
        )

    def to_dict(self) -> JsonDict:
        return {"replacedUnsafe": self.replaced_unsafe, "replacedPii": self.replaced_pii}


@dataclass
class ModerationResponse(BaseResponse):
    """Result of every moderation call."""
    is_clean: bool
    is_bypass_attempt: bool
    severity: Optional[str] = None
    category_scores: Optional[Dict[str, str]] = None
    issues: Optional[List[ModerationIssue]] = None
    reason: Optional[str] = None
    safe_content: Optional[str] = None
    addons: Optional[AddonUsage] = None

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)

    @classmethod
    def from_dict(cls, data: Any) -> "ModerationResponse":
        """Create ModerationResponse from API response dictionary."""
        data = require_object(data, "moderation response")

        category_scores = get_optional(data, "categoryScores", dict)
        if category_scores is not None:
            for category, score in category_scores.items():
                if not isinstance(score, str):
                    raise SerializationError(
                        f"Score for category '{category}' should be str, got {type(score).__name__}"
                    )

        issues = get_optional(data, "issues", list)
        addons = get_optional(data, "addons", dict)

        return cls(
            is_clean=get_required(data, "isClean", bool),
            is_bypass_attempt=get_required(data, "isBypassAttempt", bool),
            severity=get_optional(data, "severity", str),
            category_scores=dict(category_scores) if category_scores is not None else None,
            issues=[ModerationIssue.from_dict(i) for i in issues] if issues is not None else None,
            reason=get_optional(data, "reason", str),
            safe_content=get_optional(data, "safeContent", str),
            addons=AddonUsage.from_dict(addons) if addons is not None else None
        )

    def to_dict(self) -> JsonDict:
        return build_payload(
            {"isClean": self.is_clean},
            {
                "severity": self.severity,
                "categoryScores": self.category_scores,
                "issues": [i.to_dict() for i in self.issues] if self.issues is not None else None,
                "reason": self.reason,
                "isBypassAttempt": self.is_bypass_attempt,
                "safeContent": self.safe_content,
                "addons": self.addons.to_dict() if self.addons is not None else None,
            },
        )


@dataclass
class UsageResponse(BaseResponse):
    """Plan tier and token quota of the API key."""
    tier: str
    rate_limit: int
    tokens_used: int
    remaining_tokens: int
    token_limit: Optional[int] = None

    @property
    def is_unlimited(self) -> bool:
        return self.token_limit is None

    @property
    def usage_percentage(self) -> Optional[float]:
        """Share of the token limit already used, or None without a limit."""
        if not self.token_limit:
            return None
        return self.tokens_used / self.token_limit * 100

    @classmethod
    def from_dict(cls, data: Any) -> "UsageResponse":
        """Create UsageResponse from API response dictionary."""
        data = require_object(data, "usage response")
        return cls(
            tier=get_required(data, "tier", str),
            rate_limit=get_required(data, "rateLimit", int),
            tokens_used=get_required(data, "tokensUsed", int),
            remaining_tokens=get_required(data, "remainingTokens", int),
            token_limit=get_optional(data, "tokenLimit", int)
        )

    def to_dict(self) -> JsonDict:
        return build_payload(
            {"tier": self.tier, "rateLimit": self.rate_limit},
            {
                "tokenLimit": self.token_limit,
                "tokensUsed": self.tokens_used,
                "remainingTokens": self.remaining_tokens,
            },
        )


ResponseT = TypeVar("ResponseT", ModerationResponse, UsageResponse)


# ==================== SafeComms API Client ====================

class SafeCommsClient:
    """
    Async client for the SafeComms moderation API.

    Every call is a single request/response round trip: no retries, no
    caching. The client keeps no per-call state, so one instance can serve
    concurrent calls.

    Example:
        async with SafeCommsClient(api_key="your_key") as client:
            result = await client.moderate_text("some user comment", pii=True)
            if not result.is_clean:
                print(f"Flagged ({result.severity}): {result.reason}")

            result = await client.moderate_image_file("photo.png", enable_ocr=True)

            usage = await client.get_usage()
            print(f"{usage.tier}: {usage.remaining_tokens} tokens left")

        # Reuse an existing session (the client won't close it)
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=30)) as session:
            client = SafeCommsClient(api_key="your_key", session=session)
            usage = await client.get_usage()
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        config: Optional[ClientConfig] = None
    ):
        """
        Initialize the SafeComms client.

        Args:
            api_key: SafeComms API key (bearer token)
            base_url: API base URL (defaults to https://api.safecomms.dev)
            session: Optional aiohttp session to share; it is never closed here
            config: Prebuilt ClientConfig, used instead of api_key/base_url

        Raises:
            ConfigurationError: If neither api_key nor config is given
        """
        if config is None:
            if api_key is None:
                raise ConfigurationError("api_key or config is required")
            config = ClientConfig(api_key=api_key, base_url=base_url)

        self._config = config
        self._session = session
        self._owns_session = session is None
        self._closed = False

        logger.debug(f"SafeComms client initialized for {self._config.base_url}")

    @classmethod
    def from_env(cls, session: Optional[aiohttp.ClientSession] = None) -> "SafeCommsClient":
        """Create a client from SAFECOMMS_API_KEY / SAFECOMMS_BASE_URL."""
        return cls(config=ClientConfig.from_env(), session=session)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def base_url(self) -> str:
        return self._config.base_url

    @property
    def api_key(self) -> str:
        return self._config.api_key

    async def __aenter__(self) -> "SafeCommsClient":
        """Async context manager entry."""
        self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
        return False

    async def close(self) -> None:
        """
        Close the HTTP session if this client created it.

        A closed client can't be reused; later calls raise RequestError.
        """
        self._closed = True
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            logger.debug("HTTP session closed")

    def _get_session(self, endpoint: Optional[str] = None) -> aiohttp.ClientSession:
        if self._closed:
            raise RequestError("Client is closed", endpoint=endpoint)

        # No await between the check and the assignment, so concurrent
        # first calls still share one session.
        if self._session is None:
            self._session = aiohttp.ClientSession()
            logger.debug("HTTP session created")
        elif self._session.closed:
            raise RequestError("HTTP session is closed", endpoint=endpoint)
        return self._session

    def _get_headers(self) -> Headers:
        """Get request headers with authentication."""
        return {
            "Authorization": f"Bearer {self._config.api_key}",
            "Accept": "application/json",
        }

    # -------------------- Request Handler --------------------

    async def _request(
        self,
        method: HttpMethod,
        endpoint: str,
        response_model: Type[ResponseT],
        json_body: Optional[JsonDict] = None,
        form: Optional[aiohttp.FormData] = None
    ) -> ResponseT:
        """
        Send one request and decode the result.

        Raises:
            RequestError: If the HTTP call fails
            APIError: If the API returns a non-2xx status
            SerializationError: If the body can't be encoded or decoded
        """
        url = self._config.url_for(endpoint)
        headers = self._get_headers()
        data: Any = form

        if json_body is not None:
            data = encode_json(json_body)
            headers["Content-Type"] = "application/json"

        logger.debug(f"{method} {url}")
        session = self._get_session(endpoint)

        try:
            async with session.request(method, url, headers=headers, data=data) as response:
                status = response.status
                reason = response.reason
                raw = await response.read()
                encoding = response.get_encoding() or "utf-8"
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Request to {endpoint} failed: {e!r}")
            raise RequestError(
                f"HTTP request failed: {e!r}",
                endpoint=endpoint,
                original_error=e
            ) from e

        logger.debug(f"{method} {url} -> {status}")

        if not 200 <= status < 300:
            body = raw.decode(encoding, errors="replace")
            message = resolve_error_message(status, reason, body)
            logger.warning(f"API error on {endpoint} ({status}): {message}")
            raise APIError(message, status_code=status, endpoint=endpoint)

        return response_model.from_dict(decode_json(raw, encoding))

    # -------------------- Moderation --------------------

    async def moderate_text(
        self,
        content: str,
        language: Optional[str] = None,
        replace: Optional[bool] = None,
        pii: Optional[bool] = None,
        replace_severity: Optional[str] = None,
        moderation_profile_id: Optional[str] = None
    ) -> ModerationResponse:
        """
        Moderate a piece of text.

        Args:
            content: Text to check (an empty string is sent as-is)
            language: Language code hint
            replace: Ask the service to produce ``safe_content`` with unsafe
                terms replaced
            pii: Also redact personally identifiable information
            replace_severity: Minimum severity that gets replaced
            moderation_profile_id: Server-side moderation profile to apply

        Returns:
            ModerationResponse

        Raises:
            APIError: If the API rejects the request
            RequestError: If the request fails
            SerializationError: If the response doesn't match the schema
        """
        request = TextModerationRequest(
            content=content,
            language=language,
            replace=replace,
            pii=pii,
            replace_severity=replace_severity,
            moderation_profile_id=moderation_profile_id
        )

        result = await self._request(
            "POST", "/moderation/text", ModerationResponse, json_body=request.to_payload()
        )
        logger.info(f"Text moderation complete: clean={result.is_clean}, severity={result.severity}")
        return result

    async def moderate_image(self, request: ImageModerationRequest) -> ModerationResponse:
        """
        Moderate an image passed inline (base64 data or URL).

        Example:
            request = ImageModerationRequest(image="https://x.test/cat.png", enable_ocr=True)
            result = await client.moderate_image(request)
        """
        result = await self._request(
            "POST", "/moderation/image", ModerationResponse, json_body=request.to_payload()
        )
        logger.info(f"Image moderation complete: clean={result.is_clean}, severity={result.severity}")
        return result

    async def moderate_image_file(
        self,
        file_path: FilePath,
        language: Optional[str] = None,
        moderation_profile_id: Optional[str] = None,
        enable_ocr: Optional[bool] = None,
        enhanced_ocr: Optional[bool] = None,
        extract_metadata: Optional[bool] = None
    ) -> ModerationResponse:
        """
        Upload a local image file for moderation.

        The file is read fully into memory before anything is sent. The part
        is named after the file's last path segment (``image.jpg`` if there
        is none).

        Args:
            file_path: Path to the image
            language: Language code hint for OCR'd text
            moderation_profile_id: Server-side moderation profile to apply
            enable_ocr: Extract and moderate text in the image
            enhanced_ocr: Use the slower, more accurate OCR model
            extract_metadata: Return image metadata

        Returns:
            ModerationResponse

        Raises:
            FileReadError: If the file can't be read (an APIError subclass)
            APIError: If the API rejects the request
            RequestError: If the request fails
            SerializationError: If the response doesn't match the schema
        """
        request = ImageFileModerationRequest(
            file_path=file_path,
            language=language,
            moderation_profile_id=moderation_profile_id,
            enable_ocr=enable_ocr,
            enhanced_ocr=enhanced_ocr,
            extract_metadata=extract_metadata
        )

        logger.info(f"Uploading image for moderation: {Path(file_path)}")
        file_content = await read_file(file_path)

        result = await self._request(
            "POST",
            "/moderation/image/upload",
            ModerationResponse,
            form=request.to_form_data(file_content)
        )
        logger.info(f"Image upload moderation complete: clean={result.is_clean}")
        return result

    # -------------------- Usage --------------------

    async def get_usage(self) -> UsageResponse:
        """
        Get the plan tier and token usage for this API key.

        Example:
            usage = await client.get_usage()
            if not usage.is_unlimited:
                print(f"{usage.usage_percentage:.1f}% of tokens used")
        """
        result = await self._request("GET", "/usage", UsageResponse)
        logger.info(f"Usage retrieved: tier={result.tier}, remaining={result.remaining_tokens}")
        return result


__all__ = [
    # Main API Client
    "SafeCommsClient",

    # Request Models
    "TextModerationRequest",
    "ImageModerationRequest",
    "ImageFileModerationRequest",

    # Response Models
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
