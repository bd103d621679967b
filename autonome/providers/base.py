"""Shared prompt building and response scoring for cloud providers.

Every provider sends the same prompt and scores the answer the same
way, so the ledger sees comparable confidence and learning-gain values
whichever model produced them.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional, Tuple

from autonome.protocols import ProviderResponse

DEFAULT_CONFIDENCE = 0.7

SYSTEM_PROMPT = (
    "You are the reasoning engine of a system that is learning a knowledge domain. "
    "Answer the question accurately and completely. "
    "End your answer with a final line of the form 'CONFIDENCE: <number between 0 and 1>' "
    "stating how confident you are in the answer."
)

_CONFIDENCE_RE = re.compile(r"^\s*CONFIDENCE\s*:\s*([01](?:\.\d+)?|\.\d+)\s*$", re.IGNORECASE)


def build_prompt(domain: str, query: str, context: Optional[Dict[str, Any]] = None) -> str:
    """User message for ``query`` within ``domain``."""
    parts = [f"Domain: {domain}", f"Question: {query}"]
    if context:
        parts.append(f"Context: {json.dumps(context, default=str, sort_keys=True)}")
    return "\n".join(parts)


def parse_confidence(text: str) -> Tuple[str, float]:
    """Split the trailing ``CONFIDENCE:`` line off ``text``.

    Returns (content, confidence). Missing or malformed lines give
    DEFAULT_CONFIDENCE and leave the text untouched.
    """
    lines = text.rstrip().splitlines()
    if lines:
        match = _CONFIDENCE_RE.match(lines[-1])
        if match:
            value = min(1.0, max(0.0, float(match.group(1))))
            return "\n".join(lines[:-1]).rstrip(), value
    return text.strip(), DEFAULT_CONFIDENCE


def relevance(content: str, query: str) -> float:
    """Share of the query's words (longer than 3 chars) that appear in the answer."""
    query_words = query.lower().split()
    content_words = set(content.lower().split())
    matches = sum(1 for word in query_words if len(word) > 3 and word in content_words)
    return min(1.0, matches / max(1, len(query_words)))


def completeness(content: str, query: str) -> float:
    """Answer length against an expected minimum of max(50, 10 words per query word)."""
    expected = max(50, len(query.split()) * 10)
    return min(1.0, len(content.split()) / expected)


def assess_response(
    query: str,
    text: str,
    *,
    model_id: Optional[str] = None,
    usage: Optional[Dict[str, int]] = None,
) -> ProviderResponse:
    """Turn raw model output into a scored ProviderResponse.

    learning_gained = confidence*0.4 + relevance*0.3 + completeness*0.3
    """
    content, confidence = parse_confidence(text)
    gained = (
        confidence * 0.4 + relevance(content, query) * 0.3 + completeness(content, query) * 0.3
    )
    return ProviderResponse(
        content=content,
        confidence=confidence,
        learning_gained=gained,
        success=bool(content),
        model_id=model_id,
        usage=dict(usage or {}),
    )
