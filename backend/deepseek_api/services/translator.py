import time
from typing import Dict, Mapping
from fastapi import Depends
from fastapi.responses import JSONResponse, StreamingResponse
from deepseek_api.core.config import Settings, get_settings
from deepseek_api.core.errors import UpstreamError
from deepseek_api.core.logging import setup_logger
from deepseek_api.models.chat import ChatChoice, ChatCompletion, ChatCompletionRequest, ChatMessage
from deepseek_api.services.reframer import CompletionStream, new_completion_id
from deepseek_api.services.upstream import UpstreamStream, WorkersAIClient, collect_text, get_upstream

logger = setup_logger()

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

class CompletionTranslator:
    """Translates chat completion requests into Workers AI calls and back."""

    def __init__(self, upstream: WorkersAIClient, settings: Settings, model_mapping: Mapping[str, str] = None):
        self.upstream = upstream
        self.settings = settings
        self.model_mapping: Dict[str, str] = dict(model_mapping if model_mapping is not None else settings.MODEL_MAPPING)

    def resolve_model(self, model: str) -> str:
        return self.model_mapping.get(model, model)

    async def translate(self, request: ChatCompletionRequest):
        upstream_model = self.resolve_model(request.model)
        stream = request.is_stream
        synthesized = stream and self.settings.STREAM_STRATEGY == "synthesized"

        payload = {
            "messages": [msg.model_dump() for msg in request.messages],
            "stream": stream and not synthesized,
            **request.upstream_options(),
        }
        logger.info(f"Calling {upstream_model} (requested {request.model}, stream={stream}, synthesized={synthesized})")

        try:
            result = await self.upstream.run(upstream_model, payload)
        except UpstreamError:
            raise
        except Exception as e:
            logger.error(f"Upstream call to {upstream_model} failed: {str(e)}")
            raise UpstreamError(str(e) or "Upstream call failed")

        if not stream:
            return await self._complete(request.model, result)

        completion = CompletionStream(request.model)
        if synthesized:
            text = await collect_text(result)
            events = completion.synthesize(
                text,
                chunk_size=self.settings.SYNTH_CHUNK_SIZE,
                delay=self.settings.SYNTH_CHUNK_DELAY,
            )
        elif isinstance(result, UpstreamStream):
            events = completion.reframe(result.chunks, buffered=self.settings.STREAM_BUFFERING)
        else:
            # upstream answered in one piece although a stream was requested
            events = completion.synthesize(await collect_text(result), chunk_size=self.settings.SYNTH_CHUNK_SIZE, delay=0)

        return StreamingResponse(events, media_type="text/event-stream", headers=STREAM_HEADERS)

    async def _complete(self, model: str, result) -> JSONResponse:
        text = await collect_text(result)
        completion = ChatCompletion(
            id=new_completion_id(),
            created=int(time.time()),
            model=model,
            choices=[
                ChatChoice(
                    index=0,
                    message=ChatMessage(role="assistant", content=text),
                    finish_reason="stop",
                )
            ],
        )
        return JSONResponse(completion.model_dump())

def get_translator(
    upstream: WorkersAIClient = Depends(get_upstream),
    settings: Settings = Depends(get_settings),
) -> CompletionTranslator:
    return CompletionTranslator(upstream, settings)
