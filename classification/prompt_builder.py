"""Prompt builder for single-response survey classification."""

import json

from classification.schema import EMOTIONS, INTENTS, SENTIMENTS, TOPIC_HIERARCHY

_HIERARCHY_JSON = json.dumps(TOPIC_HIERARCHY, indent=2)

_OUTPUT_SHAPE = json.dumps(
    {
        "sentiment": " | ".join(SENTIMENTS),
        "sentiment_score": "number from -1.0 to 1.0",
        "intent": " | ".join(INTENTS),
        "emotions": [" | ".join(EMOTIONS)],
        "topics": ["<main topic>", "<sub-topic, optional>"],
        "explanation": "brief explanation of the classification",
        "confidence": "integer from 0 to 100",
        "redacted_excerpt": "the original text with names, emails and phone numbers redacted",
    },
    indent=2,
)

SYSTEM_INSTRUCTIONS = """\
You are a survey analyst classifying customer feedback.

STRICT RULES:
- Return one JSON object and nothing else.
- Do NOT wrap the JSON in markdown code fences.
- Use only the enum values listed in the output shape.
"""

_USER_TEMPLATE = """\
Classify the feedback into exactly one main topic and, if applicable, one
sub-topic from the hierarchy below. The "topics" array must contain the
main topic first and the sub-topic second (only if one applies). In the
explanation, identify the core issue or praise.

## Topic hierarchy
```json
{hierarchy}
```

## Output shape
```json
{shape}
```

## Feedback
"{text}"
"""


def build_classification_prompt(text: str) -> str:
    """Render the user prompt for one response text."""
    return _USER_TEMPLATE.format(
        hierarchy=_HIERARCHY_JSON,
        shape=_OUTPUT_SHAPE,
        text=(text or "").replace('"', '\\"'),
    )
