"""
templates/blueprint_renderer.py

Turns a validated EmailBlueprint into email HTML. Runs of consecutive flight
cards in a section are rendered as one grid.
"""

from typing import List, Optional, assert_never

from schemas.blueprint import (
    BadgeRowComponent,
    CallToAction,
    ChartComponent,
    EmailBlueprint,
    EmailSection,
    FlightCardComponent,
    TextBlockComponent,
)
from schemas.notifications import RenderedEmail
from templates.components import (
    badge_row,
    button,
    chart_block,
    email_layout,
    email_section,
    flight_card,
    flight_card_grid,
    text_block,
)
from templates.formatters import strip_html


def render_email(subject: str, html: str) -> RenderedEmail:
    return RenderedEmail(subject=subject, html=html, text=strip_html(html))


def _card_grid(cards: List[FlightCardComponent]) -> str:
    return flight_card_grid([
        flight_card(
            title=card.title,
            description=card.description,
            highlights=[{"label": h.label, "value": h.value} for h in card.highlights],
            action={"label": card.action.label, "url": str(card.action.url)} if card.action else None,
        )
        for card in cards
    ])


def render_section(section: EmailSection) -> str:
    children: List[str] = []
    pending_cards: List[FlightCardComponent] = []

    def flush_cards():
        if pending_cards:
            children.append(_card_grid(pending_cards))
            pending_cards.clear()

    for component in section.components:
        if isinstance(component, FlightCardComponent):
            pending_cards.append(component)
            continue

        flush_cards()
        if isinstance(component, TextBlockComponent):
            children.append(text_block(component.body, headline=component.headline))
        elif isinstance(component, BadgeRowComponent):
            children.append(badge_row([item.label for item in component.items]))
        elif isinstance(component, ChartComponent):
            children.append(chart_block(
                title=component.title,
                summary=component.summary,
                chart_type=component.chartType,
                data=component.data,
                unit=component.unit,
            ))
        else:
            assert_never(component)

    flush_cards()
    return email_section(children, title=section.title, description=section.description)


def render_sections_from_blueprint(sections: List[EmailSection]) -> str:
    return "".join(render_section(s) for s in sections)


def render_call_to_action(cta: CallToAction) -> str:
    # No url: the label is shown as plain text
    if cta.url is None:
        return email_section([text_block(cta.label)])
    return email_section([f'<div style="margin-top:8px;">{button(cta.label, str(cta.url))}</div>'])


def render_blueprint_email(blueprint: EmailBlueprint, hero_html: Optional[str] = None) -> RenderedEmail:
    """Hero (optional), intro, sections, call to action, personalization."""
    meta = blueprint.metadata

    parts: List[str] = []
    if hero_html:
        parts.append(hero_html)
    if meta.intro:
        parts.append(email_section([text_block(meta.intro)]))
    parts.append(render_sections_from_blueprint(blueprint.sections))
    if meta.callToAction:
        parts.append(render_call_to_action(meta.callToAction))
    if meta.personalization:
        parts.append(email_section([text_block(meta.personalization)]))

    html = email_layout(meta.previewText, "".join(parts))
    return render_email(meta.subject, html)
