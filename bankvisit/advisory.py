"""Advisory text for a slot recommendation.

The LLM only phrases a decision already made by RecommendationEngine: the
prompt carries the chosen slot, and replies naming any other time are
discarded. Missing API key, timeouts, errors, an open circuit or a bad
reply all fall back to template text.
"""
import logging
import os
import re
from typing import Any, List, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from bankvisit import config
from bankvisit.availability import normalize_slot
from bankvisit.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from bankvisit.errors import SlotNotFoundError
from bankvisit.logging_config import get_logger
from bankvisit.models import Advisory, BankService, Recommendation
from bankvisit.state import CrowdLabel

logger = get_logger(__name__)
retry_logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a bank branch visit assistant.
You explain, in at most two short sentences, why a given arrival time is a good choice.
Mention only the time you are given. Never suggest other times."""

# "10:30 AM", "10:30 a.m.", "2 PM", "2pm", and 24h "14:30"
TIME_PATTERN = re.compile(
    r"\b\d{1,2}(?::\d{2})?\s*[AaPp]\.?[Mm]\b\.?"
    r"|\b\d{1,2}:\d{2}\b"
)

FALLBACK_TEMPLATES = {
    CrowdLabel.LOW: "{slot} is one of the quietest times for {service} today, so you should be seen quickly.",
    CrowdLabel.MODERATE: "{slot} is the best available time for {service} today; expect a moderate crowd.",
    CrowdLabel.HIGH: "The branch is busy today. {slot} is still the least crowded time for {service}.",
    CrowdLabel.VERY_HIGH: "Every slot is heavily booked today. {slot} is the earliest of the least crowded times for {service}.",
}


class MalformedAdvisory(ValueError):
    """Raised when the collaborator's reply cannot be used."""
    pass


def create_llm(api_key: Optional[str] = None) -> Optional[Any]:
    """ChatOpenAI client, or None when no API key is configured."""
    key = api_key or os.getenv("OPENAI_API_KEY")
    if not key:
        return None

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=config.ADVISORY_MODEL,
        temperature=0.3,
        timeout=config.ADVISORY_TIMEOUT_SECONDS,
        max_retries=0,  # retries handled here
        api_key=key,
    )


class SlotAdvisor:
    """Narrates recommendations through an optional chat model."""

    def __init__(
        self,
        llm: Optional[Any] = None,
        breaker: Optional[CircuitBreaker] = None,
        max_attempts: int = 2,
        wait=None,
    ):
        """
        Args:
            llm: Chat model with .invoke(messages) (None -> template text only)
            breaker: Circuit breaker for the model (default: 3 failures, 60s)
            max_attempts: Tries per narration before falling back
            wait: tenacity wait strategy (default: exponential 0.5s..4s)
        """
        self.llm = llm
        self.breaker = breaker or CircuitBreaker(name="advisory")
        self.max_attempts = max_attempts
        self.wait = wait or wait_exponential(multiplier=0.5, min=0.5, max=4)

    def fallback(self, recommendation: Recommendation, service: BankService) -> Advisory:
        template = FALLBACK_TEMPLATES[recommendation.crowd_label]
        return Advisory(
            recommended_slot=recommendation.recommended_slot,
            text=template.format(slot=recommendation.recommended_slot, service=service.label),
            source="fallback",
        )

    def narrate(self, recommendation: Recommendation, service: BankService) -> Advisory:
        """Advisory text for the recommendation. Never raises for collaborator problems."""
        if self.llm is None:
            return self.fallback(recommendation, service)

        try:
            text = self.breaker.call(self._generate, recommendation, service)
        except CircuitBreakerOpen as e:
            logger.info("advisory_skipped", reason=str(e))
            return self.fallback(recommendation, service)
        except Exception as e:
            logger.warning(
                "advisory_failed",
                error=str(e),
                error_type=type(e).__name__,
                recommended_slot=recommendation.recommended_slot,
            )
            return self.fallback(recommendation, service)

        return Advisory(
            recommended_slot=recommendation.recommended_slot,
            text=text,
            source="llm",
        )

    def _messages(self, recommendation: Recommendation, service: BankService) -> List:
        return [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=(
                f"Service: {service.label} (about {service.average_time} minutes).\n"
                f"Chosen arrival time: {recommendation.recommended_slot}.\n"
                f"Crowd at that time: {recommendation.crowd_label.value}.\n"
                f"Branch load today: {recommendation.average_load_percent}%."
            )),
        ]

    def _generate(self, recommendation: Recommendation, service: BankService) -> str:
        messages = self._messages(recommendation, service)

        for attempt in Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait,
            retry=retry_if_exception_type(Exception),
            before_sleep=before_sleep_log(retry_logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                response = self.llm.invoke(messages)
                return self.validate(response, recommendation)

    def validate(self, response: Any, recommendation: Recommendation) -> str:
        """
        Accept the reply only if it is non-empty text naming the chosen slot
        and no other time.

        Raises:
            MalformedAdvisory: Otherwise
        """
        content = getattr(response, "content", response)
        if not isinstance(content, str) or not content.strip():
            raise MalformedAdvisory("Empty or non-text advisory reply")

        text = content.strip()
        mentioned = set()
        for match in TIME_PATTERN.findall(text):
            cleaned = match.replace(".", "")
            try:
                mentioned.add(normalize_slot(cleaned))
            except SlotNotFoundError:
                raise MalformedAdvisory(f"Advisory names an unknown time: {match}")

        if recommendation.recommended_slot not in mentioned:
            raise MalformedAdvisory("Advisory does not mention the recommended slot")
        if mentioned - {recommendation.recommended_slot}:
            raise MalformedAdvisory(
                f"Advisory suggests other slots: {sorted(mentioned - {recommendation.recommended_slot})}"
            )
        return text
