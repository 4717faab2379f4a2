"""Shared validators and utility schemas."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class SuccessResponse(BaseModel):
    status: str = "success"
    data: dict


def clamp(value: int | None, low: int, high: int, default: int) -> int:
    if value is None:
        return default
    return max(low, min(high, value))


def normalize_signal(signal: str) -> str:
    return signal.strip().lower()


def normalize_signals(signals: list[str] | None) -> list[str]:
    """Normalised, non-empty signal texts in their original order."""
    out = []
    for raw in signals or []:
        value = normalize_signal(str(raw))
        if value:
            out.append(value)
    return out
