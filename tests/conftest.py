"""
Shared fixtures: an in-process aiohttp server standing in for the SafeComms API.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from safecomms import SafeCommsClient


API_KEY = "test-key"

CLEAN_RESPONSE: Dict[str, Any] = {"isClean": True, "isBypassAttempt": False}

FLAGGED_RESPONSE: Dict[str, Any] = {
    "isClean": False,
    "severity": "High",
    "categoryScores": {"profanity": "0.97", "harassment": "0.12"},
    "issues": [
        {"term": "darn", "context": "well darn it"},
        {"term": "heck"},
    ],
    "reason": "Profanity detected",
    "isBypassAttempt": True,
    "safeContent": "well **** it",
    "addons": {"replacedUnsafe": True, "replacedPii": False},
}

USAGE_RESPONSE: Dict[str, Any] = {
    "tier": "pro",
    "rateLimit": 100,
    "tokensUsed": 5,
    "remainingTokens": 95,
}


class FakeSafeComms:
    """Records every request and answers with canned responses per path."""

    def __init__(self):
        self.base_url = ""
        self.requests: List[Dict[str, Any]] = []
        self.delay = 0.0
        # paths whose response body is cut off by dropping the connection
        self.truncated: Set[str] = set()
        self._responses: Dict[str, Tuple[int, bytes, str]] = {
            "/usage": (200, json.dumps(USAGE_RESPONSE).encode(), "application/json"),
        }

    def respond(
        self,
        path: str,
        status: int = 200,
        json_body: Optional[Any] = None,
        text: Optional[str] = None,
        raw: Optional[bytes] = None,
    ) -> None:
        if json_body is not None:
            self._responses[path] = (status, json.dumps(json_body).encode(), "application/json")
        elif raw is not None:
            self._responses[path] = (status, raw, "text/plain")
        else:
            self._responses[path] = (status, (text or "").encode(), "text/plain")

    async def handle(self, request: web.Request) -> web.StreamResponse:
        record: Dict[str, Any] = {
            "method": request.method,
            "path": request.path,
            "headers": {k.lower(): v for k, v in request.headers.items()},
        }

        if request.content_type == "multipart/form-data":
            fields: Dict[str, str] = {}
            files: Dict[str, Tuple[str, bytes, str]] = {}
            post = await request.post()
            for name, value in post.items():
                if isinstance(value, web.FileField):
                    files[name] = (value.filename, value.file.read(), value.content_type)
                else:
                    fields[name] = value
            record["fields"] = fields
            record["files"] = files
        elif request.body_exists:
            record["json"] = json.loads(await request.text())

        self.requests.append(record)

        if self.delay:
            await asyncio.sleep(self.delay)

        if request.path in self.truncated:
            response = web.StreamResponse(status=200, headers={"Content-Length": "1000"})
            response.content_type = "application/json"
            await response.prepare(request)
            await response.write(b'{"isClean": tr')
            request.transport.close()
            return response

        status, body, content_type = self._responses.get(
            request.path, (200, json.dumps(CLEAN_RESPONSE).encode(), "application/json")
        )
        return web.Response(status=status, body=body, content_type=content_type, charset="utf-8")


@pytest_asyncio.fixture
async def fake_api():
    fake = FakeSafeComms()
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", fake.handle)

    server = TestServer(app)
    await server.start_server()
    fake.base_url = f"http://{server.host}:{server.port}"
    try:
        yield fake
    finally:
        await server.close()


@pytest_asyncio.fixture
async def client(fake_api):
    async with SafeCommsClient(api_key=API_KEY, base_url=fake_api.base_url) as c:
        yield c
