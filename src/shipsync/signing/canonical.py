"""Canonical ``key=value&...`` serialisation for courier request signing."""

from __future__ import annotations

import json
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from shipsync.errors import MalformedParameterError

__all__ = [
    "SigningProfile",
    "FLASH_EXPRESS_PROFILE",
    "canonical_fields",
    "canonicalise",
    "normalise_value",
]


@dataclass(frozen=True)
class SigningProfile:
    """How a courier expects its parameters canonicalised.

    Attributes:
        exclude_keys: Fields never covered by the signature (the signature
            itself, structured lists transmitted as separate JSON text).
        json_keys: Fields whose list/dict values are signed as compact JSON.
        true_value: Wire form of ``True``.
        false_value: Wire form of ``False``.
    """

    exclude_keys: frozenset[str] = field(default_factory=frozenset)
    json_keys: frozenset[str] = field(default_factory=frozenset)
    true_value: str = "1"
    false_value: str = "0"

    def with_exclusions(self, exclude_keys: frozenset[str] | None) -> SigningProfile:
        """Copy of this profile with a replaced exclusion set.

        ``sign`` is always kept excluded so a recomputed signature never
        covers a previous one.
        """
        if exclude_keys is None:
            return self
        return SigningProfile(
            exclude_keys=frozenset(exclude_keys) | {"sign"},
            json_keys=self.json_keys,
            true_value=self.true_value,
            false_value=self.false_value,
        )


# Flash Express Open API: flags are 0/1, item and sub-parcel lists travel as
# JSON text outside the signature.
FLASH_EXPRESS_PROFILE = SigningProfile(
    exclude_keys=frozenset({"sign", "subItemTypes", "subParcel"}),
)


# U+001C..U+001F plus the ECMAScript whitespace and line terminators that the
# courier's verifier trims. U+0085 is not among them.
_BLANK = re.compile(
    r"[\t\n\x0b\x0c\r\x1c-\x1f \xa0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000\ufeff]*"
)


def _is_blank(text: str) -> bool:
    return _BLANK.fullmatch(text) is not None


def _format_number(key: str, value: float | Decimal) -> str:
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise MalformedParameterError(key, "NaN and infinity have no wire form")
        if value.is_integer():
            return str(int(value))
        value = Decimal(repr(value))
    if not value.is_finite():
        raise MalformedParameterError(key, "NaN and infinity have no wire form")
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def normalise_value(key: str, value: Any, profile: SigningProfile = FLASH_EXPRESS_PROFILE) -> str:
    """Render one field value in its canonical string form.

    Raises:
        MalformedParameterError: For objects that have no deterministic form.
    """
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return profile.true_value if value else profile.false_value
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (float, Decimal)):
        return _format_number(key, value)
    if isinstance(value, (list, tuple, dict)):
        if key in profile.json_keys:
            return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
        raise MalformedParameterError(
            key, "structured values must be excluded or pre-serialised before signing"
        )
    raise MalformedParameterError(key, f"unsupported type {type(value).__name__}")


def canonical_fields(
    fields: Mapping[str, Any], profile: SigningProfile = FLASH_EXPRESS_PROFILE
) -> dict[str, str]:
    """Filter and normalise ``fields``; the result is ready to be sorted."""
    result: dict[str, str] = {}
    for key, value in fields.items():
        if not isinstance(key, str):
            raise MalformedParameterError(str(key), "field names must be strings")
        if key in profile.exclude_keys or value is None:
            continue
        text = normalise_value(key, value, profile)
        if _is_blank(text):
            continue
        result[key] = text
    return result


def canonicalise(fields: Mapping[str, Any], profile: SigningProfile = FLASH_EXPRESS_PROFILE) -> str:
    """Produce the canonical string: filtered, sorted by code point, unencoded.

    Args:
        fields: Request parameters. Never mutated.
        profile: Exclusion set and type-normalisation rules.

    Returns:
        ``k1=v1&k2=v2...`` without the secret suffix.
    """
    normalised = canonical_fields(fields, profile)
    return "&".join(f"{key}={normalised[key]}" for key in sorted(normalised))
