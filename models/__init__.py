"""
Models package for generation results and stream events.
"""

from .generation_result import Completion, GenerationResult, TokenUsage
from .stream_event import StreamEvent

__all__ = ["Completion", "GenerationResult", "StreamEvent", "TokenUsage"]
