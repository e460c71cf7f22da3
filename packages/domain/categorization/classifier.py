"""
External Classifier - Claude fallback for products no deterministic stage knows

Last resort of the waterfall before the "other" default. One short
Bulgarian prompt per unseen product name; the reply is a small JSON object
with a category id from the fixed taxonomy and a confidence.

Guards:
- Outbound calls bounded by a semaphore (classifier_max_concurrency)
- Each call wrapped in asyncio.wait_for (classifier_timeout_seconds)
- Any failure (timeout, API error, bad JSON, unknown id) → None

Example:
- Input: "Kinder Bueno 43г"
- Reply: {"category_id": "snacks", "confidence": 0.9}
- Output: ClassifierVerdict(category_id=snacks, confidence=0.9)
"""
import asyncio
import json
import time
from typing import Any, Optional

import anthropic
import structlog

from packages.common.config import get_settings
from packages.common.metrics import classifier_calls_total, classifier_latency_seconds
from packages.domain.categorization.schemas import (
    CATEGORY_NAMES,
    CategoryId,
    ClassifierVerdict,
    is_known_category,
)

logger = structlog.get_logger()

SYSTEM_PROMPT = (
    "Ти си експерт по категоризиране на български хранителни и домакински продукти. "
    "Отговаряй само с валиден JSON."
)


class ExternalClassifier:
    """
    Anthropic-backed product classifier.

    Usage:
        verdict = await external_classifier.classify("Kinder Bueno 43г")
        if verdict:
            print(verdict.category_id, verdict.confidence)
    """

    def __init__(self, client: Optional[Any] = None):
        """
        Initialize classifier from settings.

        Args:
            client: Pre-built AsyncAnthropic-compatible client (tests inject a mock)
        """
        self.settings = get_settings()
        self.model = self.settings.classifier_model
        self.timeout = self.settings.classifier_timeout_seconds
        self.max_tokens = self.settings.classifier_max_tokens
        self.default_confidence = self.settings.classifier_default_confidence
        self._semaphore = asyncio.Semaphore(self.settings.classifier_max_concurrency)

        if client is not None:
            self.client = client
        elif self.settings.anthropic_api_key:
            self.client = anthropic.AsyncAnthropic(api_key=self.settings.anthropic_api_key)
        else:
            logger.warning("anthropic_api_key_missing",
                          message="ANTHROPIC_API_KEY not set, classifier stage disabled")
            self.client = None

    @property
    def available(self) -> bool:
        return self.client is not None

    async def classify(self, product_name: str) -> Optional[ClassifierVerdict]:
        """
        Ask the model for a category.

        Args:
            product_name: Raw product name

        Returns:
            ClassifierVerdict, or None on any failure
        """
        if not self.client:
            classifier_calls_total.labels(outcome="unavailable").inc()
            return None

        prompt = self._build_prompt(product_name)
        started = time.monotonic()

        try:
            async with self._semaphore:
                response = await asyncio.wait_for(
                    self.client.messages.create(
                        model=self.model,
                        max_tokens=self.max_tokens,
                        temperature=0.0,
                        system=SYSTEM_PROMPT,
                        messages=[{"role": "user", "content": prompt}],
                    ),
                    timeout=self.timeout,
                )
        except asyncio.TimeoutError:
            classifier_calls_total.labels(outcome="timeout").inc()
            logger.warning("classifier_call_timeout",
                          product_name=product_name,
                          timeout_seconds=self.timeout)
            return None
        except Exception as e:
            classifier_calls_total.labels(outcome="error").inc()
            logger.error("classifier_call_failed",
                        product_name=product_name,
                        error=str(e),
                        exc_info=True)
            return None
        finally:
            classifier_latency_seconds.observe(time.monotonic() - started)

        text = response.content[0].text if response.content else ""
        verdict = self._parse_response(text)
        if verdict is None:
            classifier_calls_total.labels(outcome="unparseable").inc()
            return None

        classifier_calls_total.labels(outcome="success").inc()
        logger.info("classifier_call_complete",
                   product_name=product_name,
                   category=verdict.category_id.value,
                   confidence=verdict.confidence,
                   input_tokens=getattr(response.usage, "input_tokens", None),
                   output_tokens=getattr(response.usage, "output_tokens", None))
        return verdict

    def _build_prompt(self, product_name: str) -> str:
        category_list = ", ".join(
            f"{category_id.value}: {name}"
            for category_id, name in CATEGORY_NAMES.items()
            if category_id != CategoryId.OTHER
        )
        return f"""Категоризирай този български продукт от магазин: "{product_name}"

Налични категории: {category_list}

Върни отговор в JSON формат:
{{
  "category_id": "id на категорията",
  "confidence": число между 0 и 1
}}

Избери най-подходящата категория. Ако не си сигурен, върни "other" с ниска confidence."""

    def _parse_response(self, response_text: str) -> Optional[ClassifierVerdict]:
        """
        Parse the model's JSON reply.

        Args:
            response_text: Raw reply, possibly wrapped in a ```json fence

        Returns:
            ClassifierVerdict, or None if the reply is unusable
        """
        try:
            if "```json" in response_text:
                response_text = response_text.split("```json")[1].split("```")[0].strip()
            elif "```" in response_text:
                response_text = response_text.split("```")[1].split("```")[0].strip()

            data = json.loads(response_text)
            category_id = data.get("category_id")
            if not isinstance(category_id, str) or not is_known_category(category_id):
                logger.warning("classifier_unknown_category", category_id=category_id)
                return None

            # A zero confidence reads as unset, like a missing one
            raw_confidence = data.get("confidence")
            confidence = float(raw_confidence) if raw_confidence else self.default_confidence

            return ClassifierVerdict(
                category_id=CategoryId(category_id),
                confidence=min(max(confidence, 0.0), 1.0),
                model=self.model,
            )

        except Exception as e:
            logger.error("classifier_response_parse_failed",
                        response=response_text,
                        error=str(e),
                        exc_info=True)
            return None


# Singleton instance
external_classifier = ExternalClassifier()
