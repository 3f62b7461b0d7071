"""
schemas/blueprint.py

Structured email content produced by the AI step.

Every blueprint is validated against these models before rendering. Anything
that does not fit (over-long strings, too many sections, unknown component
types) is rejected and the caller falls back to the fixed templates.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, HttpUrl


class CallToAction(BaseModel):
    label: str = Field(..., min_length=1, max_length=60)
    url: Optional[HttpUrl] = None


class EmailBlueprintMetadata(BaseModel):
    subject: str = Field(..., min_length=1, max_length=120)
    previewText: str = Field(..., min_length=1, max_length=180)
    intro: str = Field(..., min_length=1, max_length=600)
    callToAction: Optional[CallToAction] = None
    personalization: Optional[str] = Field(None, max_length=240)


# =====================================================================
# SECTION: COMPONENTS
# =====================================================================

class TextBlockComponent(BaseModel):
    id: str = Field(..., min_length=1)
    type: Literal["text"]
    headline: Optional[str] = Field(None, min_length=1, max_length=120)
    body: str = Field(..., min_length=1, max_length=800)
    tone: Literal["concise", "detailed", "urgent", "celebratory"] = "concise"


class FlightCardHighlight(BaseModel):
    label: str = Field(..., min_length=1, max_length=60)
    value: str = Field(..., min_length=1, max_length=120)


class FlightCardAction(BaseModel):
    label: str = Field(..., min_length=1, max_length=50)
    url: HttpUrl


class FlightCardComponent(BaseModel):
    id: str = Field(..., min_length=1)
    type: Literal["flight-card"]
    title: str = Field(..., min_length=1, max_length=120)
    description: str = Field(..., min_length=1, max_length=240)
    highlights: List[FlightCardHighlight] = Field(..., min_length=1, max_length=6)
    action: Optional[FlightCardAction] = None


class ChartPoint(BaseModel):
    label: str = Field(..., min_length=1, max_length=40)
    value: float = Field(..., allow_inf_nan=False)


class ChartComponent(BaseModel):
    id: str = Field(..., min_length=1)
    type: Literal["chart"]
    title: str = Field(..., min_length=1, max_length=120)
    chartType: Literal["sparkline", "bar"]
    unit: Optional[Literal["usd", "minutes", "percent", "count"]] = None
    data: List[ChartPoint] = Field(..., min_length=2, max_length=20)
    summary: str = Field(..., min_length=1, max_length=200)


class BadgeItem(BaseModel):
    label: str = Field(..., min_length=1, max_length=40)


class BadgeRowComponent(BaseModel):
    id: str = Field(..., min_length=1)
    type: Literal["badge-row"]
    items: List[BadgeItem] = Field(..., min_length=1, max_length=10)


EmailComponent = Annotated[
    Union[TextBlockComponent, FlightCardComponent, ChartComponent, BadgeRowComponent],
    Field(discriminator="type"),
]


# =====================================================================
# SECTION: BLUEPRINT
# =====================================================================

class EmailSection(BaseModel):
    id: str = Field(..., min_length=1)
    title: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = Field(None, min_length=1, max_length=240)
    components: List[EmailComponent] = Field(..., min_length=1, max_length=6)


class EmailBlueprint(BaseModel):
    metadata: EmailBlueprintMetadata
    sections: List[EmailSection] = Field(..., min_length=1, max_length=6)


# Baseline shown to the model as an example of a valid blueprint.
BASE_BLUEPRINT = EmailBlueprint(
    metadata=EmailBlueprintMetadata(
        subject="Flight alert",
        previewText="Latest updates based on your alert",
        intro="Here is your latest flight update.",
    ),
    sections=[
        EmailSection(
            id="overview",
            title="Summary",
            description="Snapshot of the most important changes.",
            components=[
                TextBlockComponent(
                    id="overview-text",
                    type="text",
                    tone="concise",
                    headline="New flight insights",
                    body="No major updates were provided.",
                ),
            ],
        ),
    ],
)
