"""templates/price_drop_alert.py - Price drop email. Both variants lead with the same hero block."""

from typing import Optional

from loguru import logger

from schemas.blueprint import EmailBlueprint
from schemas.notifications import PriceDropAlertEmail, RenderedEmail
from templates.blueprint_renderer import render_blueprint_email, render_email
from templates.components import (
    badge_row,
    build_flight_highlights,
    email_layout,
    email_section,
    flight_card,
    flight_card_grid,
    text_block,
)
from templates.daily_price_update import alert_badges
from templates.formatters import escape_html, format_currency, format_date, format_datetime

FALLBACK_BODY = (
    "Here are the best matches right now. Prices can change quickly, "
    "so book soon if any option works for you."
)


def price_drop_subject(payload: PriceDropAlertEmail) -> str:
    return f"Price drop: {payload.alert.origin} → {payload.alert.destination}"


def price_drop_preview(payload: PriceDropAlertEmail) -> str:
    parts = []
    if payload.newLowestPrice:
        parts.append(format_currency(payload.newLowestPrice.amount, payload.newLowestPrice.currency, decimals=0))
    parts.append(format_date(payload.detectedAt))
    return " • ".join(parts)


def price_summary(payload: PriceDropAlertEmail) -> Optional[str]:
    if not payload.newLowestPrice:
        return None
    new_price = format_currency(payload.newLowestPrice.amount, payload.newLowestPrice.currency)
    if payload.previousLowestPrice:
        previous = format_currency(payload.previousLowestPrice.amount, payload.previousLowestPrice.currency)
        return f"New low price {new_price} (was {previous})"
    return f"Lowest available price {new_price}"


def render_hero(payload: PriceDropAlertEmail) -> str:
    alert = payload.alert
    badges = alert_badges(alert, price_prefix="Target:")
    summary = price_summary(payload)

    badges_html = f'<div style="margin-top:10px;">{badge_row(badges)}</div>' if badges else ""
    summary_html = (
        f'<div style="font-size:14px;color:#4338ca;margin-top:12px;">{escape_html(summary)}</div>'
        if summary else ""
    )

    return f"""
        <section style="padding:32px 28px;border-bottom:1px solid #e2e8f0;background:linear-gradient(135deg, #eef2ff 0%, #fff 100%);">
          <div style="font-size:13px;color:#64748b;text-transform:uppercase;letter-spacing:0.1em;">Price drop detected</div>
          <h1 style="margin:8px 0 0;font-size:22px;color:#0f172a;">{escape_html(alert.origin)} → {escape_html(alert.destination)}</h1>
          <div style="font-size:14px;color:#475569;margin-top:6px;">Alert: {escape_html(alert.label)}</div>
          <div style="font-size:13px;color:#64748b;margin-top:6px;">Updated {escape_html(format_datetime(payload.detectedAt))}</div>
          {badges_html}
          {summary_html}
        </section>"""


def render_price_drop_fallback(payload: PriceDropAlertEmail) -> RenderedEmail:
    route = f"{payload.alert.origin} → {payload.alert.destination}"
    cards = flight_card_grid([
        flight_card(title=f"Option {idx}", description=route, highlights=build_flight_highlights(flight))
        for idx, flight in enumerate(payload.flights, start=1)
    ])
    body = render_hero(payload) + email_section([text_block(FALLBACK_BODY), cards])
    html = email_layout(price_drop_preview(payload), body)
    return render_email(price_drop_subject(payload), html)


def render_price_drop_alert_email(
    payload: PriceDropAlertEmail,
    blueprint: Optional[EmailBlueprint] = None,
) -> RenderedEmail:
    if blueprint is None:
        return render_price_drop_fallback(payload)

    try:
        return render_blueprint_email(blueprint, hero_html=render_hero(payload))
    except Exception as e:
        logger.warning(f"[email] price drop blueprint render failed, using fallback: {e}")
        return render_price_drop_fallback(payload)
