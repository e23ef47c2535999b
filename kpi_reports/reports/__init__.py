from .prompts import build_prompt
from .parsing import format_report, parse_completion, strip_fences

__all__ = ['build_prompt', 'format_report', 'parse_completion', 'strip_fences']
