"""
Tests for shared helpers and client configuration.
"""

import pytest

from safecomms.utils import (
    ClientConfig,
    ConfigurationError,
    FileReadError,
    SerializationError,
    DEFAULT_BASE_URL,
    build_payload,
    decode_json,
    form_value,
    parse_problem_details,
    resolve_error_message,
    upload_filename,
    read_file,
)


class TestClientConfig:
    """Test ClientConfig normalization and env loading."""

    def test_strips_trailing_slashes(self):
        config = ClientConfig(api_key="k", base_url="https://x.test///")

        assert config.base_url == "https://x.test"
        assert config.url_for("/moderation/text") == "https://x.test/moderation/text"

    def test_default_base_url(self):
        assert ClientConfig(api_key="k").base_url == DEFAULT_BASE_URL
        assert ClientConfig(api_key="k", base_url=None).base_url == DEFAULT_BASE_URL

    def test_api_key_hidden_from_repr(self):
        assert "secret" not in repr(ClientConfig(api_key="secret"))

    def test_is_immutable(self):
        config = ClientConfig(api_key="k")

        with pytest.raises(AttributeError):
            config.api_key = "other"

    def test_from_env(self):
        config = ClientConfig.from_env(
            {"SAFECOMMS_API_KEY": "env-key", "SAFECOMMS_BASE_URL": "http://localhost:8080/"}
        )

        assert config.api_key == "env-key"
        assert config.base_url == "http://localhost:8080"

    def test_from_env_without_key(self):
        with pytest.raises(ConfigurationError):
            ClientConfig.from_env({})


class TestPayloadHelpers:
    """Test payload and form helpers."""

    def test_build_payload_skips_none_only(self):
        payload = build_payload({"content": ""}, {"a": None, "b": False, "c": ""})

        assert payload == {"content": "", "b": False, "c": ""}

    def test_form_value(self):
        assert form_value(True) == "true"
        assert form_value(False) == "false"
        assert form_value("en") == "en"


class TestErrorResolution:
    """Test problem-details parsing and message resolution."""

    def test_detail_wins_over_title(self):
        assert resolve_error_message(400, "Bad Request", '{"detail": "D", "title": "T"}') == "D"

    def test_title_when_no_detail(self):
        assert resolve_error_message(400, "Bad Request", '{"title": "T"}') == "T"

    def test_null_detail_falls_through_to_title(self):
        assert resolve_error_message(400, "Bad Request", '{"detail": null, "title": "T"}') == "T"

    def test_empty_detail_is_kept(self):
        assert resolve_error_message(400, "Bad Request", '{"detail": "", "title": "T"}') == ""

    def test_status_line_when_neither(self):
        assert resolve_error_message(404, "Not Found", "{}") == "404 Not Found"
        assert resolve_error_message(404, None, "{}") == "404"

    def test_raw_body_fallback(self):
        assert resolve_error_message(500, "Internal Server Error", "oops") == "500 - oops"
        assert resolve_error_message(502, "Bad Gateway", "") == "502 - "

    @pytest.mark.parametrize("body", ['{"detail": 5}', "[1, 2]", '"text"', "null"])
    def test_non_problem_json(self, body):
        assert parse_problem_details(body) is None
        assert resolve_error_message(500, "Internal Server Error", body) == f"500 - {body}"


class TestFileHelpers:
    """Test upload file naming and reading."""

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/var/images/cat.png", "cat.png"),
            ("cat.png", "cat.png"),
            ("/", "image.jpg"),
            ("", "image.jpg"),
            ("..", "image.jpg"),
        ],
    )
    def test_upload_filename(self, path, expected):
        assert upload_filename(path) == expected

    @pytest.mark.asyncio
    async def test_read_file(self, tmp_path):
        path = tmp_path / "a.bin"
        path.write_bytes(b"\x00\x01")

        assert await read_file(path) == b"\x00\x01"

    @pytest.mark.asyncio
    async def test_read_missing_file(self, tmp_path):
        with pytest.raises(FileReadError) as exc_info:
            await read_file(tmp_path / "nope")

        assert exc_info.value.path.endswith("nope")
        assert "Failed to read file" in exc_info.value.message


class TestDecodeJson:
    """Test response body decoding."""

    def test_decodes_bytes(self):
        assert decode_json(b'{"tier": "pro"}') == {"tier": "pro"}

    def test_honours_encoding(self):
        assert decode_json('{"t": "é"}'.encode("latin-1"), "latin-1") == {"t": "é"}

    def test_invalid_bytes(self):
        with pytest.raises(SerializationError) as exc_info:
            decode_json(b"\xc3\x28")

        assert isinstance(exc_info.value.original_error, UnicodeDecodeError)
