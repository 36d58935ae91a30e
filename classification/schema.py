"""Structured output schema for per-response survey classification."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Sentiment = Literal["positive", "neutral", "negative"]
Intent = Literal["feedback", "complaint", "praise", "suggestion", "question", "rant", "other"]
Emotion = Literal["joy", "frustration", "anger", "sadness", "confusion", "gratitude"]

SENTIMENTS = ("positive", "neutral", "negative")
INTENTS = ("feedback", "complaint", "praise", "suggestion", "question", "rant", "other")
EMOTIONS = ("joy", "frustration", "anger", "sadness", "confusion", "gratitude")

# Export column order after the original survey columns.
CLASSIFICATION_FIELDS = (
    "sentiment",
    "sentiment_score",
    "intent",
    "emotions",
    "topics",
    "explanation",
    "confidence",
    "redacted_excerpt",
)

TOPIC_HIERARCHY: Dict[str, List[str]] = {
    "Product Experience": [
        "Product quality or durability issues",
        "Product not matching description/image",
        "Wrong or missing item received",
        "Product packaging quality",
        "Product variety or availability",
    ],
    "Delivery & Logistics": [
        "Delivery speed",
        "Delivery tracking accuracy",
        "Delivery person behavior",
        "Package condition",
        "Wrong or partial delivery",
    ],
    "Return, Refund & Replacement": [
        "Return pickup experience",
        "Refund processing time",
        "Replacement process",
        "Policy clarity",
        "Communication during refund",
    ],
    "Customer Service / Support": [
        "Issue resolution",
        "Response time",
        "Agent politeness",
        "Difficulty reaching support",
        "Escalation handling",
    ],
    "Pricing & Offers": [
        "Price fairness",
        "Discounts or coupons",
        "Hidden charges",
        "Value for money",
    ],
    "Website / App Usability": [
        "Ease of browsing",
        "Search and filter accuracy",
        "Checkout or payment process",
        "App performance issues",
        "Account management",
    ],
    "Order & Inventory Management": [
        "Out of stock issues",
        "Order cancellation",
        "Inventory accuracy",
        "Pre-order delays",
    ],
    "Overall Experience & Brand Trust": [
        "Overall satisfaction",
        "Brand trust",
        "Recommendation likelihood",
        "Repeat purchase intention",
    ],
}


class Classification(BaseModel):
    """Verdict for one survey response.

    ``topics`` holds the main topic first and an optional sub-topic second.
    Values are expected to come from ``TOPIC_HIERARCHY`` but are not
    checked against it.
    """

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        str_strip_whitespace=True,
    )

    sentiment: Sentiment
    sentiment_score: float
    intent: Intent
    emotions: List[Emotion] = Field(default_factory=list)
    topics: List[str] = Field(min_length=1, max_length=2)
    explanation: str = ""
    confidence: int = Field(ge=0, le=100)
    redacted_excerpt: str = ""

    @field_validator("sentiment", "intent", mode="before")
    @classmethod
    def _lowercase_label(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("emotions", mode="before")
    @classmethod
    def _normalize_emotions(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            return value
        seen: List[Any] = []
        for item in value:
            tag = item.strip().lower() if isinstance(item, str) else item
            if tag not in seen:
                seen.append(tag)
        return seen

    @field_validator("topics", mode="before")
    @classmethod
    def _normalize_topics(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            return value
        cleaned = [str(item).strip() for item in value if item is not None and str(item).strip()]
        return cleaned[:2]

    @property
    def main_topic(self) -> Optional[str]:
        return self.topics[0] if self.topics else None

    @property
    def sub_topic(self) -> Optional[str]:
        return self.topics[1] if len(self.topics) > 1 else None
