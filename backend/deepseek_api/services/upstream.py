from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional, Union
import json
import httpx
from fastapi import Depends, FastAPI, Request
from deepseek_api.core.config import Settings, get_settings
from deepseek_api.core.errors import UpstreamError
from deepseek_api.core.logging import setup_logger

logger = setup_logger()

@dataclass
class UpstreamText:
    text: str

@dataclass
class UpstreamObject:
    data: Dict[str, Any]

@dataclass
class UpstreamStream:
    chunks: AsyncIterator[bytes]

UpstreamResult = Union[UpstreamText, UpstreamObject, UpstreamStream]

def text_from_text(result: UpstreamText) -> str:
    return result.text

def text_from_object(result: UpstreamObject) -> str:
    data = result.data
    if isinstance(data.get("result"), dict):
        data = data["result"]
    for field in ("response", "text"):
        value = data.get(field)
        if value is not None:
            return value if isinstance(value, str) else json.dumps(value)
    return ""

async def text_from_stream(result: UpstreamStream) -> str:
    parts = []
    try:
        async for chunk in result.chunks:
            parts.append(chunk.decode("utf-8", errors="replace") if isinstance(chunk, bytes) else chunk)
    except (httpx.HTTPError, httpx.StreamError) as e:
        logger.error(f"Upstream stream interrupted while draining: {str(e)}")
        raise UpstreamError(f"Upstream stream interrupted: {str(e)}")
    return "".join(parts)

async def collect_text(result: UpstreamResult) -> str:
    """Drain an upstream result of any kind into a single text blob."""
    if isinstance(result, UpstreamStream):
        return await text_from_stream(result)
    if isinstance(result, UpstreamObject):
        return text_from_object(result)
    return text_from_text(result)

class WorkersAIClient:
    """Calls a Workers AI model through the Cloudflare REST API."""

    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self.client = client
        self.settings = settings

    def _url(self, model: str) -> str:
        base = self.settings.CLOUDFLARE_API_BASE.rstrip("/")
        return f"{base}/accounts/{self.settings.CLOUDFLARE_ACCOUNT_ID}/ai/run/{model}"

    async def run(self, model: str, payload: Dict[str, Any]) -> UpstreamResult:
        if not self.settings.CLOUDFLARE_ACCOUNT_ID or not self.settings.CLOUDFLARE_API_TOKEN:
            raise UpstreamError("Workers AI credentials are not configured", code="upstream_not_configured")

        request = self.client.build_request(
            "POST",
            self._url(model),
            json=payload,
            headers={"Authorization": f"Bearer {self.settings.CLOUDFLARE_API_TOKEN}"},
        )
        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error(f"Workers AI request failed for {model}: {str(e)}")
            raise UpstreamError(f"Upstream request failed: {str(e)}")

        if response.status_code >= 400:
            body = await self._read_and_close(response)
            logger.error(f"Workers AI returned {response.status_code} for {model}: {body[:200]}")
            raise UpstreamError(
                f"Upstream returned HTTP {response.status_code}: {body[:200]}",
                code=f"upstream_http_{response.status_code}",
            )

        content_type = response.headers.get("content-type", "")
        if "text/event-stream" in content_type:
            return UpstreamStream(self._iter_bytes(response))

        body = await self._read_and_close(response)
        if "json" in content_type:
            try:
                data = json.loads(body)
            except ValueError:
                return UpstreamText(body)
            if isinstance(data, dict):
                return UpstreamObject(data)
            return UpstreamText(body)
        return UpstreamText(body)

    @staticmethod
    async def _read_and_close(response: httpx.Response) -> str:
        try:
            data = await response.aread()
        except httpx.HTTPError as e:
            raise UpstreamError(f"Failed to read upstream response: {str(e)}")
        finally:
            await response.aclose()
        return data.decode("utf-8", errors="replace")

    @staticmethod
    async def _iter_bytes(response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        finally:
            await response.aclose()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for the shared upstream HTTP client"""
    settings = get_settings()
    app.state.http_client = httpx.AsyncClient(timeout=settings.UPSTREAM_TIMEOUT)
    logger.info("Upstream HTTP client added to app state")

    yield

    await app.state.http_client.aclose()
    logger.info("Upstream HTTP client closed")

def get_upstream(request: Request, settings: Settings = Depends(get_settings)) -> WorkersAIClient:
    client: Optional[httpx.AsyncClient] = getattr(request.app.state, "http_client", None)
    if client is None:
        raise UpstreamError("Upstream HTTP client is not initialized", code="upstream_not_configured")
    return WorkersAIClient(client, settings)
