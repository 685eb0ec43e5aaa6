"""SIG interpretation through the OpenAI chat completions API.

The model is asked for a single JSON object. Payloads are validated by
parse_dosing_payload before they reach the calculator; a reply that is not
JSON at all is turned into an ambiguous dosing flagged for manual review.
"""

import json
import logging
from typing import Any

from openai import AsyncOpenAI

from ndc_calculator.errors import InterpretationError
from ndc_calculator.models import ParsedDosing, TaperStep

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
TEMPERATURE = 0.1
MAX_TOKENS = 500

MANUAL_REVIEW_CLARIFICATION = (
    "Unable to parse prescription instructions. Please review manually."
)

MEDICAL_ABBREVIATIONS = {
    "QD": "once daily",
    "BID": "twice daily",
    "TID": "three times daily",
    "QID": "four times daily",
    "Q4H": "every 4 hours",
    "Q6H": "every 6 hours",
    "Q8H": "every 8 hours",
    "Q12H": "every 12 hours",
    "PRN": "as needed",
    "AC": "before meals",
    "PC": "after meals",
    "HS": "at bedtime",
    "PO": "by mouth",
    "SL": "sublingual",
    "IM": "intramuscular",
    "IV": "intravenous",
    "TOP": "topical",
}

SYSTEM_PROMPT = (
    "You are a pharmacy prescription parser that ONLY returns valid JSON. "
    "Never add explanation or extra text."
)

SIG_PROMPT = """Parse this prescription SIG into structured data.

SIG: "{sig}"

Medical abbreviations reference:
{abbreviations}

Return ONLY a JSON object with these fields:
{{
  "dose": number,              // amount per administration
  "doseUnit": "string",        // tablet, capsule, ml, mg, g, mcg, puff, patch, ...
  "frequency": number,         // times per day; QD=1, BID=2, Q6H=4; PRN -> 0
  "route": "string",           // oral, topical, sublingual, ...
  "instructions": "string",    // full readable English instructions
  "isAmbiguous": boolean,      // true if unclear or underspecified
  "clarificationNeeded": "string or null"
}}

Examples:
- "Take 1 tablet by mouth twice daily" -> dose 1, doseUnit "tablet", frequency 2, route "oral"
- "Inhale 2 puffs Q6H PRN" -> dose 2, doseUnit "puff", frequency 0, route "inhalation"
- "Take 5ml PO BID" -> dose 5, doseUnit "ml", frequency 2, route "oral"
"""

TAPER_PROMPT = """Parse this taper (step-down) prescription SIG.

SIG: "{sig}"

Return ONLY a JSON object:
{{
  "dose": number,              // first step amount per day
  "doseUnit": "tablet",
  "frequency": 1,
  "route": "oral",
  "instructions": "string",
  "isAmbiguous": boolean,
  "clarificationNeeded": "string or null",
  "taperSchedule": [{{"amount": number, "days": number}}, ...]
}}

Example: "4 tabs x 3 days, 3 tabs x 3 days, 2 tabs x 3 days, 1 tab x 3 days"
-> taperSchedule [{{"amount": 4, "days": 3}}, {{"amount": 3, "days": 3}},
   {{"amount": 2, "days": 3}}, {{"amount": 1, "days": 3}}]
"""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_taper_schedule(raw: Any) -> list[TaperStep] | None:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise InterpretationError("Invalid taper schedule in interpreter response")

    steps = []
    for item in raw:
        if not isinstance(item, dict):
            raise InterpretationError("Invalid taper step in interpreter response")
        # "tablets" is accepted as an alias for "amount"
        amount = item.get("amount", item.get("tablets"))
        days = item.get("days")
        if not _is_number(amount) or not _is_number(days):
            raise InterpretationError("Invalid taper step in interpreter response")
        steps.append(TaperStep(amount=float(amount), days=int(days)))
    return steps or None


def parse_dosing_payload(payload: dict[str, Any]) -> ParsedDosing:
    """Validate an interpreter JSON payload and build ParsedDosing.

    Args:
        payload: Decoded JSON object from the model.

    Returns:
        ParsedDosing with lowercased unit and route.

    Raises:
        InterpretationError: If a required field is missing or mistyped.
    """
    if not isinstance(payload, dict):
        raise InterpretationError("Invalid response format from dosing interpreter")

    if not (
        _is_number(payload.get("dose"))
        and isinstance(payload.get("doseUnit"), str)
        and _is_number(payload.get("frequency"))
        and isinstance(payload.get("route"), str)
        and isinstance(payload.get("instructions"), str)
        and isinstance(payload.get("isAmbiguous"), bool)
    ):
        raise InterpretationError("Invalid response format from dosing interpreter")

    return ParsedDosing(
        dose_amount=float(payload["dose"]),
        dose_unit=payload["doseUnit"].strip().lower(),
        times_per_day=float(payload["frequency"]),
        route=payload["route"].strip().lower(),
        readable_instructions=payload["instructions"],
        is_ambiguous=payload["isAmbiguous"],
        clarification=payload.get("clarificationNeeded") or None,
        taper_steps=_parse_taper_schedule(payload.get("taperSchedule")),
    )


def ambiguous_dosing(text: str) -> ParsedDosing:
    """Fallback dosing when the interpreter reply could not be decoded."""
    return ParsedDosing(
        dose_amount=0,
        dose_unit="unknown",
        times_per_day=0,
        route="unknown",
        readable_instructions=text,
        is_ambiguous=True,
        clarification=MANUAL_REVIEW_CLARIFICATION,
    )


class OpenAIDosingInterpreter:
    """Dosing interpreter backed by an OpenAI chat model.

    Args:
        client: AsyncOpenAI client (or any object exposing
            ``chat.completions.create`` as a coroutine).
        model: Chat model name.
    """

    def __init__(self, client: Any, model: str = DEFAULT_MODEL) -> None:
        self.client = client
        self.model = model

    @classmethod
    def from_api_key(
        cls,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float = 20.0,
    ) -> "OpenAIDosingInterpreter":
        """Create an interpreter with its own AsyncOpenAI client."""
        if not api_key:
            raise ValueError("OpenAI API key is required")
        return cls(AsyncOpenAI(api_key=api_key, timeout=timeout), model=model)

    async def _complete(self, prompt: str, text: str) -> ParsedDosing:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=TEMPERATURE,
                max_tokens=MAX_TOKENS,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            raise InterpretationError(
                f"Failed to parse prescription instructions: {e}"
            ) from e

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise InterpretationError("No response from dosing interpreter")

        try:
            payload = json.loads(content)
        except json.JSONDecodeError:
            logger.warning(f"Interpreter returned non-JSON content for SIG '{text}'")
            return ambiguous_dosing(text)

        dosing = parse_dosing_payload(payload)
        logger.info(
            f"Interpreted SIG: {dosing.dose_amount:g} {dosing.dose_unit} "
            f"x {dosing.times_per_day:g}/day (ambiguous={dosing.is_ambiguous})"
        )
        return dosing

    async def interpret(self, text: str) -> ParsedDosing:
        """Interpret a regular SIG."""
        abbreviations = "\n".join(
            f"- {abbr}: {meaning}" for abbr, meaning in MEDICAL_ABBREVIATIONS.items()
        )
        prompt = SIG_PROMPT.format(sig=text, abbreviations=abbreviations)
        return await self._complete(prompt, text)

    async def interpret_taper(self, text: str) -> ParsedDosing:
        """Interpret a taper SIG, filling taper_steps."""
        return await self._complete(TAPER_PROMPT.format(sig=text), text)
