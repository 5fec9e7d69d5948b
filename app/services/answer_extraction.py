"""
Answer extraction - turns a raw LLM reply into structured answers.

The model is instructed to append a JSON object wrapped in
``<answers>...</answers>``. This module pulls that block out, keeps every
field whose value has the declared type, and leaves the rest unknown.
``parse_llm_reply`` never raises: the worst outcome for any string is the
all-unknown default.
"""

import json
import logging
import math
import re
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

ANSWERS_BLOCK_RE = re.compile(r"<answers>([\s\S]*?)</answers>", re.IGNORECASE)

ARCHIVE_NEEDS_VALUES = ("none", "partial", "full")

# Shown when the model replied with nothing but the answers block
EMPTY_REPLY_FALLBACK = "Thanks! Tell me a bit more about what you need."

# JSON integers stay ints so they round-trip without a trailing ".0"
Number = Union[int, float]


@dataclass(frozen=True)
class ExtractedAnswers:
    """Requirements gathered so far. ``None`` / empty means unknown."""
    blockchains: List[str] = field(default_factory=list)
    request_volume_per_month: Optional[Number] = None
    archive_needs: Optional[str] = None  # "none" | "partial" | "full"
    geo_preference: Optional[str] = None
    budget_monthly_cents: Optional[Number] = None

    @property
    def needs_archive(self) -> bool:
        return self.archive_needs in ("partial", "full")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ParsedReply:
    assistant_text: str
    answers: ExtractedAnswers
    raw_text: str


# ── Field coercers: return the accepted value or None to keep the default ──

def _as_string_list(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    return [v for v in value if isinstance(v, str)]


def _as_number(value: Any) -> Optional[float]:
    # bool is an int subclass; JSON true/false is not a volume
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _as_archive_needs(value: Any) -> Optional[str]:
    return value if value in ARCHIVE_NEEDS_VALUES else None


def _as_string(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


_FIELD_COERCERS: Dict[str, Callable[[Any], Any]] = {
    "blockchains": _as_string_list,
    "request_volume_per_month": _as_number,
    "archive_needs": _as_archive_needs,
    "geo_preference": _as_string,
    "budget_monthly_cents": _as_number,
}


def empty_answers() -> ExtractedAnswers:
    return ExtractedAnswers()


def coerce_answers(payload: Any) -> ExtractedAnswers:
    """Merge the well-typed fields of ``payload`` over the all-unknown default."""
    if not isinstance(payload, dict):
        return empty_answers()

    overrides: Dict[str, Any] = {}
    for name, coerce in _FIELD_COERCERS.items():
        if name not in payload:
            continue
        accepted = coerce(payload[name])
        if accepted is not None:
            overrides[name] = accepted
    return replace(empty_answers(), **overrides)


def strip_answers_block(raw_text: str) -> str:
    return ANSWERS_BLOCK_RE.sub("", raw_text).strip()


def parse_llm_reply(raw_text: str) -> ParsedReply:
    """Split a model reply into display text and extracted answers."""
    if not isinstance(raw_text, str):
        raw_text = "" if raw_text is None else str(raw_text)

    answers = empty_answers()
    match = ANSWERS_BLOCK_RE.search(raw_text)
    if match:
        try:
            answers = coerce_answers(json.loads(match.group(1).strip()))
        except (ValueError, RecursionError) as exc:
            logger.warning("Could not decode answers block: %s", exc)

    assistant_text = strip_answers_block(raw_text) or EMPTY_REPLY_FALLBACK
    return ParsedReply(assistant_text=assistant_text, answers=answers, raw_text=raw_text)
