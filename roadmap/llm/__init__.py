"""Prompt construction, generation client and response validation."""

from .client import GenerationClient, LLMSettings, create_llm_client, get_llm_settings
from .prompt_builder import GenerationRequest, build_segmentation_request, truncate_text
from .validation import parse_json_response, strip_code_fences, validate_segmentation_response

__all__ = [
    "LLMSettings",
    "get_llm_settings",
    "create_llm_client",
    "GenerationClient",
    "GenerationRequest",
    "build_segmentation_request",
    "truncate_text",
    "parse_json_response",
    "strip_code_fences",
    "validate_segmentation_response",
]
