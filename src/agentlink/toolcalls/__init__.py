"""Tool-call normalization: parse, recover, merge, validate."""

from .canonical import parse_canonical_tool_calls
from .catalog import MAX_ACTIONS_PER_RESPONSE
from .fallback import (
    coerce_arg_value,
    extract_arg_pairs,
    extract_fallback_tool_calls,
    extract_json_tool_calls,
    extract_tag_soup_tool_call,
)
from .merge import is_likely_complete, merge_tool_calls
from .pipeline import NormalizationProfile, NormalizedMessage, normalize_message
from .recovery import recover_tool_use_failed
from .validate import is_valid_tool_call, validate_tool_calls

__all__ = [
    "MAX_ACTIONS_PER_RESPONSE",
    "NormalizationProfile",
    "NormalizedMessage",
    "coerce_arg_value",
    "extract_arg_pairs",
    "extract_fallback_tool_calls",
    "extract_json_tool_calls",
    "extract_tag_soup_tool_call",
    "is_likely_complete",
    "is_valid_tool_call",
    "merge_tool_calls",
    "normalize_message",
    "parse_canonical_tool_calls",
    "recover_tool_use_failed",
    "validate_tool_calls",
]
