"""Canonical field registry for thermal-oxidizer hourly logs.

Every parsing strategy resolves free-text labels to canonical field names
through the one ordered keyword table in this module. Units, semantic types,
numeric kinds and plausible ranges live here as well, so strategies never
carry their own copies.

Contract:
- ``resolve_field_name`` is pure and order-sensitive: the first rule whose
  keywords all occur in the normalised label wins.
- Labels are normalised before matching (lower-cased, OCR digit confusions
  inside words repaired, known misspellings corrected).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from thermolog.readings.models import FieldType, ValidationResult


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: FieldType
    unit: str
    kind: Literal["int", "decimal"]
    expected_range: tuple[float, float]


FIELD_SPECS: dict[str, FieldSpec] = {
    spec.name: spec
    for spec in (
        FieldSpec("vaporInletFpm", FieldType.FLOW_RATE, "FPM", "int", (0, 10000)),
        FieldSpec("dilutionAirFpm", FieldType.FLOW_RATE, "FPM", "int", (0, 5000)),
        FieldSpec("combustionAirFpm", FieldType.FLOW_RATE, "FPM", "int", (0, 5000)),
        FieldSpec("exhaustTempF", FieldType.TEMPERATURE, "°F", "int", (500, 2000)),
        FieldSpec("spherePressurePsi", FieldType.PRESSURE, "PSI", "decimal", (0, 50)),
        FieldSpec("inletPpm", FieldType.CONCENTRATION, "PPM", "decimal", (0, 100000)),
        FieldSpec("outletPpm", FieldType.CONCENTRATION, "PPM", "decimal", (0, 1000)),
        FieldSpec("totalizerScf", FieldType.TOTALIZER, "SCF", "int", (1000, 999999999)),
    )
}

# Ordered: more specific rules first.
FIELD_KEYWORD_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("vapor", "flow"), "vaporInletFpm"),
    (("vapor", "inlet"), "vaporInletFpm"),
    (("vapor",), "vaporInletFpm"),
    (("vifr",), "vaporInletFpm"),
    (("dilution",), "dilutionAirFpm"),
    (("dafr",), "dilutionAirFpm"),
    (("combustion",), "combustionAirFpm"),
    (("cafr",), "combustionAirFpm"),
    (("exhaust",), "exhaustTempF"),
    (("temp",), "exhaustTempF"),
    (("°f",), "exhaustTempF"),
    (("sphere",), "spherePressurePsi"),
    (("pressure",), "spherePressurePsi"),
    (("psi",), "spherePressurePsi"),
    (("inlet",), "inletPpm"),
    (("outlet",), "outletPpm"),
    (("totalizer",), "totalizerScf"),
    (("scf",), "totalizerScf"),
    (("ppm",), "inletPpm"),
    (("fpm",), "vaporInletFpm"),
    (("flow",), "vaporInletFpm"),
    (("reading",), "totalizerScf"),
)

# Value-range gated guesses used when only surrounding context is available.
GUESS_RULES: tuple[tuple[float, float, str, str], ...] = (
    (1000, 2000, "temp", "exhaustTempF"),
    (1000, 10000, "flow", "vaporInletFpm"),
    (100, 1000, "ppm", "inletPpm"),
    (1_000_000, float("inf"), "totalizer", "totalizerScf"),
)

LABEL_LEXICON: tuple[str, ...] = (
    "temperature",
    "pressure",
    "flow",
    "ppm",
    "totalizer",
    "inlet",
    "outlet",
    "exhaust",
    "hour",
    "vapor",
    "dilution",
    "combustion",
    "sphere",
    "inspection",
    "operator",
    "initial",
)

_MISSPELLINGS: dict[str, str] = {
    "presure": "pressure",
    "pressue": "pressure",
    "temperture": "temperature",
    "totaliser": "totalizer",
    "vapour": "vapor",
}

_WORD_RE = re.compile(r"[A-Za-z0-9|°]+")
_LETTER_RE = re.compile(r"[A-Za-z]")


def _letterize(token: str) -> str:
    if not _LETTER_RE.search(token):
        return token
    return token.replace("0", "o").replace("1", "i").replace("|", "l")


def normalize_label(text: str) -> str:
    """Lower-case a label and undo OCR digit/letter confusions inside words."""
    lowered = _WORD_RE.sub(lambda m: _letterize(m.group(0)), text.lower())
    for wrong, right in _MISSPELLINGS.items():
        lowered = lowered.replace(wrong, right)
    return lowered


def resolve_field_name(label: str) -> str | None:
    """Map free label text to a canonical field name, or None."""
    normalized = normalize_label(label)
    if not normalized.strip():
        return None
    for keywords, field_name in FIELD_KEYWORD_RULES:
        if all(keyword in normalized for keyword in keywords):
            return field_name
    return None


def guess_field_name(value: float, context: str) -> str | None:
    """Guess a field from a value's magnitude and nearby words."""
    normalized = normalize_label(context)
    for low, high, keyword, field_name in GUESS_RULES:
        if low <= value <= high and keyword in normalized:
            return field_name
    return None


def has_label_vocabulary(text: str) -> bool:
    normalized = normalize_label(text)
    return any(word in normalized for word in LABEL_LEXICON)


def field_type_for(name: str, value: object = None) -> FieldType:
    spec = FIELD_SPECS.get(name)
    if spec is not None:
        return spec.type
    if isinstance(value, (int, float)):
        return FieldType.NUMERIC
    return FieldType.TEXT


def unit_for(name: str) -> str:
    spec = FIELD_SPECS.get(name)
    return spec.unit if spec is not None else ""


def coerce_value(name: str, value: float) -> int | float:
    """Cast a parsed number to the field's numeric kind."""
    spec = FIELD_SPECS.get(name)
    if spec is not None and spec.kind == "int":
        return int(round(value))
    return float(value)


def in_expected_range(name: str, value: int | float | str | None) -> bool:
    spec = FIELD_SPECS.get(name)
    if spec is None or not isinstance(value, (int, float)):
        return False
    low, high = spec.expected_range
    return low <= value <= high


def validate_value(name: str, value: int | float | str | None) -> ValidationResult:
    """Check a value against the field's plausibility rules."""
    if value is None:
        return ValidationResult.invalid(["Failed to parse value"])

    spec = FIELD_SPECS.get(name)
    if spec is None or not isinstance(value, (int, float)):
        return ValidationResult.valid()

    errors: list[str] = []
    warnings: list[str] = []
    low, high = spec.expected_range
    if not low <= value <= high:
        warnings.append(f"Value {value} outside expected range {low:g}-{high:g}")

    if spec.type is FieldType.TEMPERATURE and value < 100:
        warnings.append("Temperature seems unusually low")
    elif spec.type is FieldType.CONCENTRATION and value > 50000:
        warnings.append("PPM reading seems unusually high")
    elif spec.type is FieldType.PRESSURE and value <= 0:
        errors.append("Pressure must be positive")

    if spec.type is not FieldType.TOTALIZER and value > 1_000_000:
        warnings.append("Value seems unusually high - possible OCR error")
    if value == 0 and name in {"exhaustTempF", "vaporInletFpm"}:
        warnings.append("Zero value may indicate missing data")

    if errors:
        return ValidationResult.invalid(errors, warnings)
    return ValidationResult.valid(warnings)
