"""
AI text generation for report narratives.
"""

from backend_riskscope.ai_engine.openai_generator import OpenAITextGenerator, build_text_generator

__all__ = ["OpenAITextGenerator", "build_text_generator"]
