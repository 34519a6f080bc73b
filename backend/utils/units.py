"""Weight unit helpers for habit log rows."""

KG_PER_LB = 0.45359237

_UNIT_ALIASES = {
    "kg": "kg",
    "kgs": "kg",
    "kilogram": "kg",
    "kilograms": "kg",
    "lb": "lb",
    "lbs": "lb",
    "pound": "lb",
    "pounds": "lb",
}


def kg_to_lb(kg: float) -> float:
    return kg / KG_PER_LB


def lb_to_kg(lb: float) -> float:
    return lb * KG_PER_LB


def normalize_weight_unit(raw: object) -> str | None:
    if not isinstance(raw, str):
        return None
    return _UNIT_ALIASES.get(raw.strip().lower())


def convert_weight(value: float, from_unit: str, to_unit: str) -> float:
    if from_unit == to_unit:
        return value
    if from_unit == "lb" and to_unit == "kg":
        return lb_to_kg(value)
    if from_unit == "kg" and to_unit == "lb":
        return kg_to_lb(value)
    raise ValueError(f"Unsupported weight conversion: {from_unit} -> {to_unit}")
