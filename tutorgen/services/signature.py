"""
Signature canonicalization

Equal request parameters, modulo case and whitespace, always hash to the
same 64-char key. The signature is the content cache key for plans.
"""

import hashlib
import json
import re
from dataclasses import asdict, dataclass
from typing import Any, Mapping, Optional, Union

DEFAULT_FOCUS = "general"
DEFAULT_LEVEL = "beginner"
DEFAULT_MINUTES = 15
DEFAULT_LOCALE = "en"
DEFAULT_SCHEMA_VERSION = 1

_WHITESPACE = re.compile(r"\s+")


def _norm(value: Optional[str], default: str) -> str:
    if value is None:
        return default
    text = _WHITESPACE.sub(" ", str(value)).strip().lower()
    return text or default


def _int_or_default(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


@dataclass(frozen=True)
class SignatureParams:
    topic: str
    focus: Optional[str] = None
    level: Optional[str] = None
    minutes_per_day: Optional[int] = None
    locale: Optional[str] = None
    schema_version: Optional[int] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SignatureParams":
        return cls(
            topic=data.get("topic") or "",
            focus=data.get("focus"),
            level=data.get("level"),
            minutes_per_day=data.get("minutes_per_day"),
            locale=data.get("locale"),
            schema_version=data.get("schema_version"),
        )

    def normalized(self) -> dict:
        """Trimmed, lower-cased and defaulted copy of the parameters"""
        return {
            "topic": _norm(self.topic, ""),
            "focus": _norm(self.focus, DEFAULT_FOCUS),
            "level": _norm(self.level, DEFAULT_LEVEL),
            "minutes_per_day": _int_or_default(self.minutes_per_day, DEFAULT_MINUTES),
            "locale": _norm(self.locale, DEFAULT_LOCALE),
            "schema_version": _int_or_default(self.schema_version, DEFAULT_SCHEMA_VERSION),
        }

    def to_dict(self) -> dict:
        return asdict(self)


def canonicalize(params: Union[SignatureParams, Mapping[str, Any]]) -> str:
    """SHA-256 over the sorted-key compact JSON of the normalized parameters"""
    if not isinstance(params, SignatureParams):
        params = SignatureParams.from_mapping(params)
    payload = json.dumps(params.normalized(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
