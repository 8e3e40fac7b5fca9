# Tools module
from .llm_service import LLMService, LLMServiceError
from .rss_tool import RSSTool
from .json_repair import ResponseParseError, parse_json_response

__all__ = [
    "LLMService",
    "LLMServiceError",
    "RSSTool",
    "ResponseParseError",
    "parse_json_response",
]
