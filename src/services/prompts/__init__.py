"""Prompts module - centralized prompt templates for AI services.

Re-exports all prompt constants and utilities for easy importing:
    from services.prompts import AI_DIRECTOR_V1, strip_markdown_code_blocks
"""

from services.prompts._base import extract_json_object, strip_markdown_code_blocks
from services.prompts.scene_plan import AI_DIRECTOR_V1
from services.prompts.translation import SCRIPT_TRANSLATOR_V1

__all__ = [
    # Utilities
    "strip_markdown_code_blocks",
    "extract_json_object",
    # Scene planning
    "AI_DIRECTOR_V1",
    # Translation
    "SCRIPT_TRANSLATOR_V1",
]
