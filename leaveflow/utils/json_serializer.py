"""
Make values safe for JSON columns (audit_logs.meta_json, notifications.meta_json,
rule_executions.trigger_context)
"""
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel


def sanitize_for_json(value: Any) -> Any:
    """
    Recursively convert a value into plain JSON types.

    Dates become ISO strings, enums their value, Decimal a float (an int when
    whole, so 2 leave days stay 2). Pydantic models are dumped in JSON mode.
    Anything else unknown falls back to str().
    """
    if value is None or isinstance(value, (bool, str, int, float)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {str(k): sanitize_for_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_for_json(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted((sanitize_for_json(v) for v in value), key=str)
    return str(value)
