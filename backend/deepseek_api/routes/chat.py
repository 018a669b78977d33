from fastapi import APIRouter, Depends, HTTPException
from deepseek_api.core.errors import InternalError
from deepseek_api.models.chat import ChatCompletion, ChatCompletionRequest, ErrorResponse
from deepseek_api.services.translator import CompletionTranslator, get_translator
from deepseek_api.core.logging import setup_logger

# Paths whose POST requests are authenticated before the body is parsed
COMPLETION_PATHS = ("/chat/completions", "/v1/chat/completions")

router = APIRouter()
logger = setup_logger()

@router.post(
    "/chat/completions",
    response_model=ChatCompletion,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def chat_completions(
    request: ChatCompletionRequest,
    translator: CompletionTranslator = Depends(get_translator),
):
    try:
        logger.info(f"Chat completion request: model={request.model}, messages={len(request.messages)}")
        return await translator.translate(request)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error in chat completions endpoint: {str(e)}")
        raise InternalError(str(e) or "Internal server error")
