from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Literal

class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"] = Field(default="user")
    content: str

class ChatCompletionRequest(BaseModel):
    # Unknown options (top_p, stop, ...) are forwarded upstream untouched
    model_config = ConfigDict(extra="allow")

    model: str = Field(default="deepseek-chat")
    messages: List[ChatMessage]
    stream: Any = Field(default=False)
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None

    @property
    def is_stream(self) -> bool:
        """Only a boolean ``true`` or the string ``"true"`` selects streaming."""
        return self.stream is True or self.stream == "true"

    def upstream_options(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"model", "messages", "stream"}, exclude_none=True)

class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

class ChatChoice(BaseModel):
    index: int
    message: ChatMessage
    finish_reason: Optional[str] = "stop"

class ChatCompletion(BaseModel):
    id: str
    object: str = "chat.completion"
    created: int
    model: str
    choices: List[ChatChoice]
    usage: Usage = Field(default_factory=Usage)

class ChunkChoice(BaseModel):
    index: int = 0
    # empty on the terminal chunk
    delta: Dict[str, str] = Field(default_factory=dict)
    finish_reason: Optional[Literal["stop"]] = None

class ChatCompletionChunk(BaseModel):
    id: str
    object: str = "chat.completion.chunk"
    created: int
    model: str
    choices: List[ChunkChoice]

class ErrorDetail(BaseModel):
    message: str
    type: str
    param: Optional[str] = None
    code: Optional[str] = None

class ErrorResponse(BaseModel):
    error: ErrorDetail
