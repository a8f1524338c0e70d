"""
Intent/Model Classifier
=======================

Advisory routing for draft text that has not been sent yet. A fixed router
backend is asked to label the draft with an intent and suggest a model
profile from a closed allow-list.

Classification never fails the call: any provider error, malformed JSON or
out-of-range field collapses into the default result.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from .config import DEFAULT_ROUTER_MODEL
from .errors import RouterError, sanitize_for_logging
from .models import ClassificationResult, Intent, LlmMessage
from .profiles import SYSTEM_DEFAULT_PROFILE
from .providers import BaseProvider

logger = logging.getLogger(__name__)

SUGGESTABLE_MODELS: tuple[str, ...] = (
    "gpt-4o",
    "gpt-4o-mini",
    "gpt-4.1-mini",
    "claude-3-5-sonnet",
    "gemini-1.5-pro",
)

MAX_PREVIEW_CHARS = 4000

ROUTER_INSTRUCTIONS = f"""You route chat messages to the most suitable language model.

Classify the user's draft message and answer with ONE JSON object only:
{{"intent": "<intent>", "suggestedModel": "<model>", "reason": "<short reason>"}}

intent must be one of: {", ".join(i.value for i in Intent)}
- chat: casual conversation, quick questions
- code: writing, debugging or explaining code
- analysis: reasoning over data, documents or long problems
- rewrite: editing, summarizing or translating given text

suggestedModel must be one of: {", ".join(SUGGESTABLE_MODELS)}

Keep reason under 20 words. Do not add any other text."""

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any"""
    text = text.strip()
    match = _FENCE_PATTERN.match(text)
    return match.group(1) if match else text


def parse_classification(raw: str) -> ClassificationResult:
    """Parse router output; raises ValueError on anything out of contract"""
    data: Any = json.loads(strip_code_fences(raw))
    if not isinstance(data, dict):
        raise ValueError("classification is not a JSON object")

    intent = Intent(data.get("intent"))

    suggested = data.get("suggestedModel")
    if suggested not in SUGGESTABLE_MODELS:
        raise ValueError(f"suggestedModel {suggested!r} is not allowed")

    reason = data.get("reason", "")
    if not isinstance(reason, str):
        raise ValueError("reason must be a string")

    return ClassificationResult(intent=intent, suggested_model=suggested, reason=reason.strip())


class IntentClassifier:
    """Best-effort intent and model suggestion for a draft message"""

    def __init__(
        self,
        router_provider: BaseProvider,
        router_model: str = DEFAULT_ROUTER_MODEL,
        default_model: str = SYSTEM_DEFAULT_PROFILE,
    ):
        self.router_provider = router_provider
        self.router_model = router_model
        self.default_model = default_model

    def default_result(self) -> ClassificationResult:
        return ClassificationResult(
            intent=Intent.CHAT, suggested_model=self.default_model, reason=""
        )

    def build_prompt(
        self, content: str, last_model_hint: str | None = None
    ) -> list[LlmMessage]:
        user_text = f"Draft message:\n{content[:MAX_PREVIEW_CHARS]}"
        if last_model_hint:
            user_text += f"\n\nModel used for the previous reply: {last_model_hint}"
        return [
            LlmMessage(role="system", content=ROUTER_INSTRUCTIONS),
            LlmMessage(role="user", content=user_text),
        ]

    async def classify(
        self, content: str, last_model_hint: str | None = None
    ) -> ClassificationResult:
        if not content or not content.strip():
            return self.default_result()

        try:
            response = await self.router_provider.generate(
                self.router_model, self.build_prompt(content, last_model_hint)
            )
        except RouterError as e:
            logger.warning(f"Routing preview unavailable: {sanitize_for_logging(e.message)}")
            return self.default_result()

        try:
            result = parse_classification(response.content)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError subclass
            logger.info(
                f"Unparseable routing preview ({e}): "
                f"{sanitize_for_logging(response.content, 100)}"
            )
            return self.default_result()

        logger.debug(f"Routing preview: {result.intent.value} -> {result.suggested_model}")
        return result
