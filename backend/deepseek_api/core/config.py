from functools import lru_cache
from typing import Dict, Literal, Optional
from pydantic import Field
from pydantic_settings import BaseSettings
import os
from dotenv import load_dotenv

load_dotenv()

# Public DeepSeek model names -> Workers AI model identifiers
DEFAULT_MODEL_MAPPING = {
    "deepseek-chat": "@cf/deepseek-ai/deepseek-v3",
    "deepseek-reasoner": "@cf/deepseek-ai/deepseek-r1-distill-qwen-32b",
}

class Settings(BaseSettings):
    API_KEY: Optional[str] = os.getenv("API_KEY")
    CLOUDFLARE_ACCOUNT_ID: Optional[str] = os.getenv("CLOUDFLARE_ACCOUNT_ID")
    CLOUDFLARE_API_TOKEN: Optional[str] = os.getenv("CLOUDFLARE_API_TOKEN")
    CLOUDFLARE_API_BASE: str = "https://api.cloudflare.com/client/v4"
    MODEL_MAPPING: Dict[str, str] = dict(DEFAULT_MODEL_MAPPING)
    STREAM_STRATEGY: Literal["passthrough", "synthesized"] = "passthrough"
    STREAM_BUFFERING: bool = True
    SYNTH_CHUNK_SIZE: int = Field(default=20, gt=0)
    SYNTH_CHUNK_DELAY: float = 0.05
    UPSTREAM_TIMEOUT: float = 60.0
    LOG_LEVEL: str = "INFO"

@lru_cache()
def get_settings():
    return Settings()
