"""templates/daily_price_update.py - Daily digest email, blueprint-driven with a fixed fallback."""

from typing import List, Optional

from loguru import logger

from schemas.blueprint import EmailBlueprint
from schemas.notifications import AlertDescriptor, DailyAlertSummary, DailyPriceUpdateEmail, RenderedEmail
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
from templates.formatters import format_currency, format_date, format_datetime, join_with_and


def alert_badges(alert: AlertDescriptor, price_prefix: str = "Max") -> List[str]:
    labels: List[str] = []
    if alert.seatType:
        labels.append(alert.seatType)
    if alert.stops:
        labels.append(alert.stops)
    if alert.airlines:
        labels.append(f"Airlines: {join_with_and(alert.airlines)}")
    if alert.priceLimit:
        labels.append(f"{price_prefix} {format_currency(alert.priceLimit.amount, alert.priceLimit.currency)}")
    return labels


def daily_subject(payload: DailyPriceUpdateEmail) -> str:
    return f"Daily update: {format_date(payload.summaryDate)} alerts"


def daily_preview(payload: DailyPriceUpdateEmail) -> str:
    count = len(payload.alerts)
    if not count:
        return "No new matches today."
    return f"Top matches for {count} active alert{'s' if count > 1 else ''}."


def _alert_section(summary: DailyAlertSummary) -> str:
    alert = summary.alert
    route = f"{alert.origin} → {alert.destination}"

    children: List[str] = []
    badges = alert_badges(alert)
    if badges:
        children.append(badge_row(badges))
    children.append(flight_card_grid([
        flight_card(
            title=f"Option {idx}",
            description=route,
            highlights=build_flight_highlights(flight),
        )
        for idx, flight in enumerate(summary.flights, start=1)
    ]))

    return email_section(
        children,
        title=alert.label,
        description=f"{route} • Updated {format_datetime(summary.generatedAt)}",
    )


def render_daily_fallback(payload: DailyPriceUpdateEmail) -> RenderedEmail:
    parts = [
        email_section(
            [text_block(f"Summary for {format_date(payload.summaryDate)}")],
            title="Daily flight price update",
        )
    ]
    if not payload.alerts:
        parts.append(email_section([text_block("No new flight matches were found in the past day.")]))
    else:
        parts.extend(_alert_section(s) for s in payload.alerts)

    html = email_layout(daily_preview(payload), "".join(parts))
    return render_email(daily_subject(payload), html)


def render_daily_price_update_email(
    payload: DailyPriceUpdateEmail,
    blueprint: Optional[EmailBlueprint] = None,
) -> RenderedEmail:
    if blueprint is None:
        return render_daily_fallback(payload)

    try:
        return render_blueprint_email(blueprint)
    except Exception as e:
        logger.warning(f"[email] daily blueprint render failed, using fallback: {e}")
        return render_daily_fallback(payload)
