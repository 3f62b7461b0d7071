"""
services/email_service.py

Notification content pipeline:
build context -> try AI blueprint -> render blueprint, or render the fixed template.

Every path ends in a RenderedEmail; AI problems only change which template is used.
"""

from typing import Optional, assert_never

from loguru import logger

from config import OPENAI_API_KEY, OPENAI_MODEL
from schemas.notifications import (
    DailyPriceUpdateEmail,
    NotificationEmailPayload,
    PriceDropAlertEmail,
    RenderedEmail,
)
from services.email_agent import BlueprintAgent, StructuredGenerator
from services.email_context import build_daily_digest_context, build_price_drop_context
from templates.daily_price_update import render_daily_price_update_email
from templates.price_drop_alert import render_price_drop_alert_email


class EmailContentPipeline:
    def __init__(
        self,
        ai_api_key: Optional[str] = None,
        model: str = OPENAI_MODEL,
        generator: Optional[StructuredGenerator] = None,
    ):
        self.agent = BlueprintAgent(ai_api_key, model=model, generator=generator)

    async def render_daily_digest_with_ai(self, payload: DailyPriceUpdateEmail) -> RenderedEmail:
        try:
            blueprint = await self.agent.generate_daily_digest_blueprint(build_daily_digest_context(payload))
        except Exception as e:
            logger.warning(f"[email] daily digest AI step failed: {e}")
            blueprint = None
        return render_daily_price_update_email(payload, blueprint)

    async def render_price_drop_with_ai(self, payload: PriceDropAlertEmail) -> RenderedEmail:
        try:
            blueprint = await self.agent.generate_price_drop_blueprint(build_price_drop_context(payload))
        except Exception as e:
            logger.warning(f"[email] price drop AI step failed: {e}")
            blueprint = None
        return render_price_drop_alert_email(payload, blueprint)

    async def build_email_content(self, payload: NotificationEmailPayload) -> RenderedEmail:
        if isinstance(payload, DailyPriceUpdateEmail):
            return await self.render_daily_digest_with_ai(payload)
        elif isinstance(payload, PriceDropAlertEmail):
            return await self.render_price_drop_with_ai(payload)
        else:
            assert_never(payload)


def build_default_pipeline() -> EmailContentPipeline:
    return EmailContentPipeline(ai_api_key=OPENAI_API_KEY, model=OPENAI_MODEL)
