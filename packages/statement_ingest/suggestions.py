"""Optional LLM category suggestions for transactions no other tier could place.

Calls the OpenAI Responses API with a strict JSON schema and validates the
body with pydantic. The tier is strictly best-effort: any API error, missing
text or shape mismatch is logged and every item falls back to "no
suggestion". Category ids not offered in the prompt are discarded.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import openai
from openai import OpenAI
from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)
from openai.types.responses.response_text_config_param import ResponseTextConfigParam
from pydantic import ValidationError

from .logging_setup import get_logger
from .models import (
    CategoryOption,
    CategorySuggestion,
    LlmSuggestionBody,
    SuggestionRequestItem,
)

DEFAULT_MODEL: str = "gpt-4o"

_logger = get_logger("statement_ingest.suggestions")


def _fallback(n: int) -> list[CategorySuggestion]:
    return [CategorySuggestion() for _ in range(n)]


def build_prompt(
    items: Sequence[SuggestionRequestItem], categories: Sequence[CategoryOption]
) -> str:
    category_lines = "\n".join(f"- {c.id}: {c.name}" for c in categories)
    tx_lines = "\n".join(
        f'{i}. description: "{t.description}" | amountCents: {t.amount_cents}'
        for i, t in enumerate(items, start=1)
    )
    return (
        "You are a finance categorizer. Given a list of categories and uncategorized "
        "bank transactions, suggest a category and an optional match pattern for each "
        "transaction.\n"
        'Use category "transfer" for payments to credit cards, debt payoff, or '
        "account-to-account transfers (these are not consumption expenses).\n\n"
        f"Categories (use the id):\n{category_lines}\n\n"
        "Uncategorized transactions (use the same order in your response):\n"
        f"{tx_lines}\n\n"
        "For each transaction return categoryId (one of the category ids above or null), "
        "suggestedMatchPattern (short substring like merchant/brand e.g. TMOBILE, AMZN, "
        "UBER, or null), and likelyRecurring (true for subscriptions/regular bills, false "
        f"for one-off). The suggestions array must have exactly {len(items)} items in the "
        "same order as the transactions list."
    )


def build_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    """Return the strict JSON Schema format for the suggestions body."""

    return {
        "type": "json_schema",
        "name": "categorize_suggestions",
        "schema": {
            "type": "object",
            "properties": {
                "suggestions": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "categoryId": {"type": ["string", "null"]},
                            "suggestedMatchPattern": {"type": ["string", "null"]},
                            "likelyRecurring": {"type": "boolean"},
                        },
                        "required": ["categoryId", "suggestedMatchPattern", "likelyRecurring"],
                        "additionalProperties": False,
                    },
                }
            },
            "required": ["suggestions"],
            "additionalProperties": False,
        },
        "strict": True,
    }


def _response_text(resp: Any) -> str:
    text: str | None = getattr(resp, "output_text", None)
    if not text or not isinstance(text, str):
        raise ValueError("Unexpected Responses API shape; unable to locate text output")
    return text


def _create_client(api_key: str) -> OpenAI:
    return OpenAI(api_key=api_key)


def suggest_categories(
    items: Sequence[SuggestionRequestItem],
    categories: Sequence[CategoryOption],
    *,
    client: Any | None = None,
    api_key: str | None = None,
    model: str = DEFAULT_MODEL,
) -> list[CategorySuggestion]:
    """Suggest a category for each of ``items``, in order.

    Always returns exactly ``len(items)`` suggestions. Without a ``client`` a
    new one is built from ``api_key``; with neither, no request is made.
    """

    n = len(items)
    if n == 0:
        return []
    if client is None:
        if not api_key:
            _logger.info("suggest_categories:skipped reason=no_api_key items=%d", n)
            return _fallback(n)
        client = _create_client(api_key)

    known = {c.id for c in categories}
    try:
        resp = client.responses.create(
            model=model,
            input=[{"role": "user", "content": build_prompt(items, categories)}],
            text=ResponseTextConfigParam(format=build_response_format()),
        )
        body = LlmSuggestionBody.model_validate(json.loads(_response_text(resp)))
    except (openai.OpenAIError, ValueError, ValidationError) as e:
        # pydantic's ValidationError and JSONDecodeError are both ValueErrors.
        _logger.warning("suggest_categories:failed items=%d error=%s", n, e)
        return _fallback(n)

    if len(body.suggestions) != n:
        _logger.warning(
            "suggest_categories:length_mismatch expected=%d got=%d", n, len(body.suggestions)
        )
        return _fallback(n)

    out: list[CategorySuggestion] = []
    for s in body.suggestions:
        category_id = s.categoryId if s.categoryId in known else None
        out.append(
            CategorySuggestion(
                category_id=category_id,
                suggested_match_pattern=s.suggestedMatchPattern,
                likely_recurring=s.likelyRecurring,
            )
        )
    _logger.info(
        "suggest_categories:done items=%d categorized=%d",
        n,
        sum(1 for s in out if s.category_id is not None),
    )
    return out


__all__ = ["DEFAULT_MODEL", "build_prompt", "build_response_format", "suggest_categories"]
