"""AI lead summaries using structured LLM outputs."""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from openai import OpenAI, RateLimitError, APITimeoutError, APIConnectionError
from pydantic import BaseModel, Field, ValidationError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from leadscout.core.exceptions import SummaryGenerationError
from leadscout.core.logging import get_logger
from leadscout.settings import Settings

logger = get_logger("services.summary")

# Decorator for LLM calls
# - Max 3 attempts
# - Exponential backoff: 2s, 4s, 8s... (max 60s)
# - Retry on rate limits, timeouts, connection errors
llm_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=60),
    retry=retry_if_exception_type(
        (
            RateLimitError,
            APITimeoutError,
            APIConnectionError,
        )
    ),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)

SYSTEM_PROMPT = (
    "You are a sales analyst who identifies automation opportunities for "
    "small and mid-sized companies. Give concise, actionable insights based on "
    "the data provided. If the data is sparse, say so explicitly. Keep the "
    "answer under 120 words in total. Always answer in valid JSON."
)


class LeadSummary(BaseModel):
    """Structured sales summary for one company."""

    what_they_do: str = Field(description="What the company most likely does (max 2 sentences)")
    why_automation: str = Field(description="Why they may need automation (1-2 sentences)")
    top_use_cases: List[str] = Field(
        default_factory=list, description="Three concrete automation use cases"
    )
    pitch_angle: str = Field(description="Suggested angle for the first contact")
    risk_notes: List[str] = Field(
        default_factory=list, description="Concerns or missing data"
    )


class SummaryService:
    """Generate sales summaries for high-scoring leads."""

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None):
        """Initialize summary service.

        Args:
            settings: Application settings (model, temperature, API key)
            client: Optional OpenAI client, created lazily otherwise
        """
        self._settings = settings
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=self._settings.openai_api_key)
        return self._client

    def generate(
        self,
        company: Any,
        sub_entity_count: int = 0,
        role_types: Optional[List[str]] = None,
    ) -> LeadSummary:
        """Generate a summary, falling back to a rule-based one if the LLM fails.

        Args:
            company: Company row or snapshot
            sub_entity_count: Number of known branches
            role_types: Distinct role types (e.g. "Daglig leder")

        Returns:
            LeadSummary
        """
        prompt = build_summary_prompt(company, sub_entity_count, role_types or [])
        try:
            return self._call_llm(prompt)
        except Exception as e:
            logger.warning("Summary LLM call failed for %s: %s", company.orgnr, e)
            return fallback_summary(company)

    @llm_retry
    def _call_llm(self, prompt: str) -> LeadSummary:
        response = self.client.chat.completions.create(
            model=self._settings.ai_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self._settings.ai_temperature,
            response_format={"type": "json_object"},
            max_tokens=500,
        )

        raw_content = response.choices[0].message.content or ""
        logger.debug("Summary LLM raw response: %s", raw_content[:500])
        if not raw_content:
            raise SummaryGenerationError("Empty response from LLM", model=self._settings.ai_model)

        try:
            return LeadSummary(**json.loads(raw_content))
        except json.JSONDecodeError as e:
            raise SummaryGenerationError(
                f"Invalid JSON from LLM: {e}",
                model=self._settings.ai_model,
                raw_output=raw_content,
            ) from e
        except ValidationError as e:
            raise SummaryGenerationError(
                f"Response validation failed: {e}",
                model=self._settings.ai_model,
                raw_output=raw_content,
            ) from e


def build_summary_prompt(company: Any, sub_entity_count: int, role_types: List[str]) -> str:
    """Build the summary prompt from the known company data."""
    parts = [
        f"Company: {company.name}",
        f"Organization number: {company.orgnr}",
    ]
    if company.organization_form_name:
        parts.append(f"Legal form: {company.organization_form_name}")
    if company.industry_description:
        parts.append(f"Industry: {company.industry_description} ({company.industry_code})")
    if company.employee_count:
        parts.append(f"Employees: {company.employee_count}")
    if company.municipality:
        location = company.municipality
        if company.county:
            location += f", {company.county}"
        parts.append(f"Location: {location}")
    if company.website:
        parts.append(f"Website: {company.website}")
    if sub_entity_count:
        parts.append(f"Branches: {sub_entity_count} sub-entities")
    if role_types:
        parts.append(f"Leadership: {', '.join(sorted(set(role_types)))}")

    parts.append("")
    parts.append("Based on this data, return a JSON object with:")
    parts.append("1. what_they_do: what the company most likely does (max 2 sentences)")
    parts.append("2. why_automation: why they may need AI automation (1-2 sentences)")
    parts.append("3. top_use_cases: array of 3 specific automation use cases we can sell")
    parts.append("4. pitch_angle: suggested approach for the first contact (1 sentence)")
    parts.append("5. risk_notes: array of concerns or missing data (if any)")
    return "\n".join(parts)


def fallback_summary(company: Any) -> LeadSummary:
    """Rule-based summary used when the LLM is unavailable."""
    if company.industry_description:
        what_they_do = f"{company.name} operates in {company.industry_description}."
    else:
        what_they_do = f"{company.name} is a registered company."

    risk_notes = []
    if not company.phone and not company.email:
        risk_notes.append("Limited contact information available")
    if not company.website:
        risk_notes.append("No website - digital maturity unclear")
    if not company.employee_count:
        risk_notes.append("Employee count unknown - size and budget unclear")

    return LeadSummary(
        what_they_do=what_they_do,
        why_automation=(
            "Manual processes in operations, customer service or administration "
            "can benefit from automation."
        ),
        top_use_cases=[
            "Process automation and workflow optimization",
            "Customer communication and CRM automation",
            "Data entry and document processing",
        ],
        pitch_angle="Focus on operational efficiency and cost reduction through targeted automation.",
        risk_notes=risk_notes or ["Limited data available for a detailed analysis"],
    )


def format_summary_as_text(summary: LeadSummary) -> str:
    """Render a summary as plain text for storage."""
    parts = [
        f"What they do:\n{summary.what_they_do}",
        "",
        f"Why automation:\n{summary.why_automation}",
        "",
        "Top use cases:",
        *[f"- {use_case}" for use_case in summary.top_use_cases],
        "",
        f"Pitch angle:\n{summary.pitch_angle}",
    ]
    if summary.risk_notes:
        parts.extend(["", "Risk notes:", *[f"- {note}" for note in summary.risk_notes]])
    return "\n".join(parts)
