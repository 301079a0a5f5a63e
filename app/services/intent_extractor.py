"""Intent Extractor — turn a free-text purchase order into an OrderIntent.

Purpose:
  Builds the extraction prompt, sends it to the LLM oracle and validates the
  answer against the OrderIntent shape:

    {
      "useParLevel": bool,
      "items": [{"name": str, "quantity": int}],
      "expectedDeliveryDateTime": ISO-8601 string (optional)
    }

Business Rules:
  - Unparseable or shape-invalid output raises ExtractionFormatError carrying
    the raw oracle output. Never substitute an empty intent for a bad answer
  - Missing/null/empty "items" is an empty order, not an error
  - "useParLevel" is the one lenient field: missing or non-bool means False
  - The current timestamp is sent as the anchor for relative delivery dates
    ("tomorrow morning", "Friday")
  - No retry here; transport errors propagate as ExtractionTransportError
  - Text longer than max_order_text_chars is cut before it is sent; the intent
    is flagged truncated and a warning is logged so callers can report it

Called by: services/order_service.py
Depends on: services/llm_service.py
"""

import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from loguru import logger

from app.config import settings
from app.exceptions import ExtractionFormatError
from app.services.llm_service import llm_json_text, parse_json_text

SYSTEM_PROMPT = """\
You extract purchase orders that restaurants send to their food and beverage \
suppliers. The input is free text typed by a person or copied from an email.

Rules:
- List every item the customer asks for with the quantity they want.
- Use the item name as written by the customer, without units or quantities \
  (e.g. "5kg tomatoes" -> name "tomatoes", quantity 5).
- Quantities are whole numbers. If no quantity is given, use 1.
- Set "useParLevel" to true only when the customer asks for their usual, \
  standing, regular or par-level order.
- If a delivery date or time is requested, resolve it against the current \
  timestamp given below and return it as ISO-8601 in \
  "expectedDeliveryDateTime". Omit the field otherwise.
- If no items are found, return an empty array for "items".

Return ONLY valid JSON in exactly this format:
{
  "useParLevel": false,
  "items": [
    {"name": "lettuce", "quantity": 5},
    {"name": "cola", "quantity": 3}
  ],
  "expectedDeliveryDateTime": "2025-01-31T07:00:00+10:00"
}"""


@dataclass(frozen=True)
class IntentLine:
    raw_name: str
    quantity: int
    item_id: int | None = None


@dataclass(frozen=True)
class OrderIntent:
    use_par_level: bool = False
    lines: tuple[IntentLine, ...] = ()
    expected_delivery: datetime | None = None
    truncated: bool = False


def build_prompt(raw_text: str, now: datetime) -> str:
    """User message: timestamp anchor followed by the customer's text."""
    return (
        f"Current timestamp: {now.isoformat()}\n\n"
        f"User input:\n{raw_text}\n"
    )


async def extract(raw_text: str, *, now: datetime | None = None) -> OrderIntent:
    """Extract a structured order intent from free text.

    Args:
        raw_text: The order as typed or as found in an email body.
        now: Anchor for relative delivery dates. Defaults to current UTC time.

    Returns:
        The validated OrderIntent.

    Raises:
        ExtractionFormatError: oracle output is not a valid intent.
        ExtractionTransportError: oracle unreachable or non-2xx.
    """
    text = (raw_text or "").strip()
    if not text:
        logger.info("Empty order text — nothing to extract")
        return OrderIntent()

    limit = settings.max_order_text_chars
    truncated = len(text) > limit
    if truncated:
        logger.warning(
            "Order text is {} chars; only the first {} are extracted", len(text), limit
        )
        text = text[:limit]

    now = now or datetime.now(timezone.utc)
    raw_output = await llm_json_text(
        build_prompt(text, now),
        system=SYSTEM_PROMPT,
        max_tokens=1024,
        temperature=0.0,
    )

    intent = parse_intent(raw_output)
    if truncated:
        intent = replace(intent, truncated=True)
    logger.info(
        "Extracted intent | items={} | par_level={} | delivery={}",
        len(intent.lines),
        intent.use_par_level,
        intent.expected_delivery,
    )
    return intent


def parse_intent(raw_output: str) -> OrderIntent:
    """Validate raw oracle output into an OrderIntent."""
    data = parse_json_text(raw_output)
    if not isinstance(data, dict):
        raise ExtractionFormatError(
            f"Could not parse extractor output: {raw_output[:200]}",
            raw_output=raw_output,
        )

    use_par_level = data.get("useParLevel")
    if not isinstance(use_par_level, bool):
        use_par_level = False

    items = data.get("items")
    if items is None:
        items = []
    if not isinstance(items, list):
        raise ExtractionFormatError("'items' must be a list", raw_output=raw_output)

    lines = tuple(_parse_line(item, raw_output) for item in items)
    expected = _parse_timestamp(data.get("expectedDeliveryDateTime"), raw_output)

    return OrderIntent(
        use_par_level=use_par_level,
        lines=lines,
        expected_delivery=expected,
    )


def _parse_line(item, raw_output: str) -> IntentLine:
    if not isinstance(item, dict):
        raise ExtractionFormatError(
            f"Item is not an object: {item!r}", raw_output=raw_output
        )
    name = item.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ExtractionFormatError(
            f"Item has no name: {item!r}", raw_output=raw_output
        )
    quantity = _coerce_quantity(item.get("quantity"))
    if quantity is None:
        raise ExtractionFormatError(
            f"Item '{name}' has a non-integer quantity: {item.get('quantity')!r}",
            raw_output=raw_output,
        )
    return IntentLine(raw_name=name.strip(), quantity=quantity)


def _coerce_quantity(value) -> int | None:
    """Accept ints, integral floats and integral numeric strings."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and re.fullmatch(r"\s*-?\d+\s*", value):
        return int(value)
    return None


def _parse_timestamp(value, raw_output: str) -> datetime | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ExtractionFormatError(
            f"expectedDeliveryDateTime is not a string: {value!r}",
            raw_output=raw_output,
        )
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as e:
        raise ExtractionFormatError(
            f"expectedDeliveryDateTime is not ISO-8601: {value!r}",
            raw_output=raw_output,
        ) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
