"""
LLM access: prompt templates, provider backends, the retrying client and
optional tracing.
"""

from .client import ClientOptions, GenerationClient, backoff_delay_ms, is_retryable
from .prompts import (
    PromptVariables,
    build_corrective_system_prompt,
    load_prompt,
    render_template,
)

__all__ = [
    "ClientOptions",
    "GenerationClient",
    "backoff_delay_ms",
    "is_retryable",
    "PromptVariables",
    "build_corrective_system_prompt",
    "load_prompt",
    "render_template",
]
