"""
templates/components.py

HTML building blocks for alert emails. Every function returns an HTML string
with inline styles (mail clients drop <style> blocks). All text is escaped here,
so callers pass plain strings.
"""

from typing import Dict, List, Optional, Sequence

from schemas.search import FlightOption
from templates.formatters import escape_html, format_short_datetime

_BADGE_STYLE = (
    "display:inline-block;padding:4px 10px;font-size:12px;border-radius:9999px;"
    "background:#eef2ff;color:#4338ca;letter-spacing:0.02em;margin:0 6px 6px 0;"
)

_BUTTON_STYLE = (
    "display:inline-block;padding:10px 16px;border-radius:8px;background:#4338ca;"
    "color:#ffffff;text-decoration:none;font-size:13px;font-weight:600;"
)

CHART_UNIT_FORMATS = {
    "usd": lambda v: f"{v:.0f} USD",
    "minutes": lambda v: f"{v:.0f} min",
    "percent": lambda v: f"{v:.1f}%",
    "count": lambda v: f"{v:.0f}",
}


# =======================================
# SECTION: LAYOUT
# =======================================

def email_layout(preview_text: str, body_html: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en" style="width:100%;">
  <head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Flight Alerts</title>
  </head>
  <body style="font-family:-apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;margin:0;padding:0;background-color:#f4f6fb;color:#0f172a;">
    <div style="display:none;max-height:0;overflow:hidden;">{escape_html(preview_text)}</div>
    <div style="width:100%;padding:24px 0;">
      <div style="max-width:640px;margin:0 auto;background:#ffffff;border-radius:12px;box-shadow:0 12px 36px rgba(15, 23, 42, 0.08);overflow:hidden;">
        {body_html}
        <div style="padding:24px 28px;font-size:13px;color:#64748b;border-top:1px solid #e2e8f0;">
          You are receiving this update because you subscribed to flight alerts.
        </div>
      </div>
    </div>
  </body>
</html>"""


def email_section(children: Sequence[str], title: Optional[str] = None, description: Optional[str] = None) -> str:
    title_html = (
        f'<h2 style="margin:0 0 8px;font-size:18px;font-weight:600;color:#0f172a;">{escape_html(title)}</h2>'
        if title else ""
    )
    description_html = (
        f'<p style="margin:0 0 16px;font-size:14px;color:#64748b;">{escape_html(description)}</p>'
        if description else ""
    )
    children_html = "".join(children)
    return f"""
        <section style="padding:28px;border-bottom:1px solid #e2e8f0;">
          {title_html}
          {description_html}
          <div style="display:grid;gap:16px;">{children_html}</div>
        </section>"""


# =======================================
# SECTION: BLOCKS
# =======================================

def text_block(body: str, headline: Optional[str] = None) -> str:
    headline_html = (
        f'<h3 style="margin:0 0 6px;font-size:16px;font-weight:600;color:#0f172a;">{escape_html(headline)}</h3>'
        if headline else ""
    )
    return (
        f"<div>{headline_html}"
        f'<p style="margin:0;font-size:14px;line-height:1.6;color:#475569;">{escape_html(body)}</p>'
        f"</div>"
    )


def badge_row(labels: Sequence[str]) -> str:
    spans = "".join(f'<span style="{_BADGE_STYLE}">{escape_html(label)}</span>' for label in labels)
    return f'<div style="display:flex;flex-wrap:wrap;">{spans}</div>'


def button(label: str, url: str) -> str:
    return f'<a href="{escape_html(url)}" style="{_BUTTON_STYLE}">{escape_html(label)}</a>'


def format_chart_value(value: float, unit: Optional[str]) -> str:
    if not unit:
        return f"{value:.0f}"
    return CHART_UNIT_FORMATS[unit](value)


def chart_block(title: str, summary: str, chart_type: str, data: Sequence, unit: Optional[str] = None) -> str:
    """Bar rows scaled between the series min and max; a flat series fills every bar."""
    values = [p.value for p in data]
    max_value = max(values)
    min_value = min(values)
    bar_color = "#60a5fa" if chart_type == "sparkline" else "#818cf8"

    rows = ""
    for point in data:
        if max_value == min_value:
            percentage = 100.0
        else:
            percentage = (point.value - min_value) / (max_value - min_value) * 100
        width = max(6.0, percentage)
        rows += f"""
            <tr>
              <td style="padding:6px 8px;font-size:12px;color:#64748b;">{escape_html(point.label)}</td>
              <td style="width:60%;padding:6px 8px;">
                <div style="height:8px;border-radius:9999px;background:#e2e8f0;overflow:hidden;">
                  <div style="width:{width:.1f}%;background:{bar_color};height:100%;"></div>
                </div>
              </td>
              <td style="padding:6px 0;font-size:12px;color:#0f172a;text-align:right;">{escape_html(format_chart_value(point.value, unit))}</td>
            </tr>"""

    return f"""
        <div style="border:1px solid #e2e8f0;border-radius:12px;padding:20px;background:#f8fafc;">
          <h3 style="margin:0 0 8px;font-size:16px;color:#0f172a;">{escape_html(title)}</h3>
          <p style="margin:0 0 16px;font-size:13px;color:#475569;">{escape_html(summary)}</p>
          <table role="presentation" style="width:100%;border-collapse:collapse;">
            <tbody>{rows}
            </tbody>
          </table>
        </div>"""


# =======================================
# SECTION: FLIGHT CARDS
# =======================================

def flight_card(
    title: str,
    description: str,
    highlights: Sequence[Dict[str, str]],
    action: Optional[Dict[str, str]] = None,
) -> str:
    items = "".join(
        f'<li style="font-size:13px;color:#475569;">'
        f'<strong style="color:#0f172a;">{escape_html(h["label"])}:</strong> {escape_html(h["value"])}</li>'
        for h in highlights
    )
    action_html = (
        f'<div style="margin-top:16px;">{button(action["label"], action["url"])}</div>'
        if action else ""
    )
    return f"""
        <div style="border:1px solid #e2e8f0;border-radius:12px;padding:20px;background:#ffffff;">
          <h3 style="margin:0 0 6px;font-size:16px;color:#0f172a;">{escape_html(title)}</h3>
          <p style="margin:0;font-size:13px;color:#64748b;">{escape_html(description)}</p>
          <ul style="list-style:none;padding:0;margin:16px 0 0;display:grid;gap:8px;">{items}</ul>
          {action_html}
        </div>"""


def flight_card_grid(cards: Sequence[str]) -> str:
    return f'<div class="flight-card-grid" style="display:grid;gap:16px;">{"".join(cards)}</div>'


def build_flight_highlights(flight: FlightOption) -> List[Dict[str, str]]:
    """Price, duration, stops, then first departure and last arrival when the flight has legs."""
    duration = sum(sl.durationMinutes or 0 for sl in flight.slices)
    total_stops = sum(sl.stops for sl in flight.slices)

    if total_stops == 0:
        stops_label = "Nonstop"
    else:
        stops_label = f"{total_stops} stop{'s' if total_stops > 1 else ''}"

    highlights = [
        {"label": "Price", "value": f"{flight.totalPrice:.0f} {flight.currency}"},
        {"label": "Duration", "value": f"{duration // 60}h {duration % 60}m"},
        {"label": "Stops", "value": stops_label},
    ]

    first_leg = flight.slices[0].legs[0] if flight.slices and flight.slices[0].legs else None
    last_slice = flight.slices[-1] if flight.slices else None
    last_leg = last_slice.legs[-1] if last_slice and last_slice.legs else None

    if first_leg:
        highlights.append({
            "label": "Departure",
            "value": f"{first_leg.departureAirportCode} • {format_short_datetime(first_leg.departureDateTime)}",
        })
    if last_leg:
        highlights.append({
            "label": "Arrival",
            "value": f"{last_leg.arrivalAirportCode} • {format_short_datetime(last_leg.arrivalDateTime)}",
        })
    return highlights
