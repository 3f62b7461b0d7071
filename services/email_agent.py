"""
services/email_agent.py

AI step of the email pipeline: asks a structured-generation backend for an
EmailBlueprint and validates what comes back.

BlueprintAgent.generate never raises. None means "render the fallback".
"""

import json
from typing import Any, Dict, Literal, Optional, Protocol

from loguru import logger
from openai import AsyncOpenAI
from pydantic import ValidationError

from config import OPENAI_MAX_RETRIES, OPENAI_MODEL
from schemas.blueprint import BASE_BLUEPRINT, EmailBlueprint

BlueprintKind = Literal["price-drop", "daily-update"]

SYSTEM_PROMPT = (
    "You are FlightTrack Mailwright, crafting structured, engaging flight alert emails. "
    "Follow the provided email blueprint schema exactly. Keep language professional, "
    "concise, and actionable. Avoid markdown and use plain sentences."
)

PROMPTS: Dict[str, str] = {
    "price-drop": (
        "Flight alert price drop context provided. Produce a compelling summary "
        "highlighting savings, urgency, and best flight options."
    ),
    "daily-update": (
        "Daily flight alert digest context provided. Summarize key findings, "
        "highlight notable routes, and include chart-ready insights."
    ),
}


class StructuredGenerator(Protocol):
    async def generate(self, system: str, prompt: str, schema: Dict[str, Any]) -> Any:
        ...


class OpenAIStructuredGenerator:
    """Chat completion in JSON mode. The schema is appended to the system message."""

    def __init__(
        self,
        api_key: str,
        model: str = OPENAI_MODEL,
        max_retries: int = OPENAI_MAX_RETRIES,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key, max_retries=max_retries)

    async def generate(self, system: str, prompt: str, schema: Dict[str, Any]) -> Any:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": f"{system}\n\nJSON schema:\n{json.dumps(schema)}"},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            temperature=0.4,
        )
        content = response.choices[0].message.content or ""
        return json.loads(content)


def build_prompt(kind: str, context: Dict[str, Any]) -> str:
    context_json = json.dumps({"type": kind, "data": context}, indent=2, default=str)
    baseline_json = json.dumps(BASE_BLUEPRINT.model_dump(mode="json", exclude_none=True), indent=2)
    return (
        f"{PROMPTS[kind]}\n\n"
        f"Context JSON:\n{context_json}\n\n"
        f"Base blueprint example:\n{baseline_json}\n\n"
        "Return a JSON object that matches the schema."
    )


class BlueprintAgent:
    def __init__(
        self,
        api_key: Optional[str],
        model: str = OPENAI_MODEL,
        generator: Optional[StructuredGenerator] = None,
    ):
        self.enabled = bool(api_key)
        if generator is None and self.enabled:
            generator = OpenAIStructuredGenerator(api_key, model=model)
        self.generator = generator

    async def generate(self, kind: BlueprintKind, context: Dict[str, Any]) -> Optional[EmailBlueprint]:
        if not self.enabled or self.generator is None:
            logger.info(f"[email] AI generation not configured, using fallback rendering ({kind})")
            return None

        try:
            candidate = await self.generator.generate(
                SYSTEM_PROMPT,
                build_prompt(kind, context),
                EmailBlueprint.model_json_schema(),
            )
            return EmailBlueprint.model_validate(candidate)
        except ValidationError as e:
            logger.warning(f"[email] AI blueprint failed validation ({kind}), {e.error_count()} issue(s); using fallback")
        except Exception as e:
            logger.warning(f"[email] AI generation failed ({kind}), using fallback: {e}")
        return None

    async def generate_daily_digest_blueprint(self, context: Dict[str, Any]) -> Optional[EmailBlueprint]:
        return await self.generate("daily-update", context)

    async def generate_price_drop_blueprint(self, context: Dict[str, Any]) -> Optional[EmailBlueprint]:
        return await self.generate("price-drop", context)
