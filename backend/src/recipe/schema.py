"""Filter recipe schema — serialize/deserialize .pfr recipe files.

A recipe persists one pipeline invocation:

    mode "named":    {"filters": ["Freeze Filter", {"name": "Dim Filter", "strength": 0.5}]}
    mode "explicit": {"selections": {"Sepia Filter": {"selected": true, "strength": 0.8}}}
"""

import json
import time
import uuid

CURRENT_VERSION = "1.0.0"

MODES = ("named", "explicit")

REQUIRED_KEYS = {
    "version",
    "id",
    "created",
    "modified",
    "author",
    "mode",
}


def new_recipe(mode: str = "named", author: str = "") -> dict:
    """Create a new empty recipe."""
    if mode not in MODES:
        raise ValueError(f"mode must be one of {MODES}, got {mode!r}")
    now = time.time()
    recipe = {
        "version": CURRENT_VERSION,
        "id": str(uuid.uuid4()),
        "created": now,
        "modified": now,
        "author": author,
        "mode": mode,
    }
    if mode == "named":
        recipe["filters"] = []
    else:
        recipe["selections"] = {}
    return recipe


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_filters(filters) -> list[str]:
    errors = []
    if not isinstance(filters, list):
        return ["'filters' must be a list"]
    for i, item in enumerate(filters):
        if isinstance(item, str):
            continue
        if not isinstance(item, dict):
            errors.append(f"filters[{i}] must be a name or an object")
            continue
        if not isinstance(item.get("name"), str):
            errors.append(f"filters[{i}].name must be a string")
        if "strength" in item and not _is_number(item["strength"]):
            errors.append(f"filters[{i}].strength must be a number")
    return errors


def _validate_selections(selections) -> list[str]:
    errors = []
    if not isinstance(selections, dict):
        return ["'selections' must be a dict"]
    for name, slot in selections.items():
        if not isinstance(slot, dict):
            errors.append(f"selections[{name!r}] must be an object")
            continue
        if not isinstance(slot.get("selected", False), (bool, str)):
            errors.append(f"selections[{name!r}].selected must be a bool or string")
        if not _is_number(slot.get("strength", 0.0)):
            errors.append(f"selections[{name!r}].strength must be a number")
    return errors


def validate(recipe: dict) -> list[str]:
    """Validate a recipe dict. Returns list of error strings (empty = valid).

    Unknown filter names are valid; the pipeline skips them.
    """
    if not isinstance(recipe, dict):
        return ["Recipe must be a JSON object"]

    errors = []

    missing = REQUIRED_KEYS - set(recipe.keys())
    if missing:
        errors.append(f"Missing top-level keys: {missing}")
        return errors  # Can't validate further

    if not isinstance(recipe["version"], str):
        errors.append("'version' must be a string")

    if not isinstance(recipe["id"], str):
        errors.append("'id' must be a string")

    mode = recipe["mode"]
    if mode == "named":
        errors.extend(_validate_filters(recipe.get("filters")))
    elif mode == "explicit":
        errors.extend(_validate_selections(recipe.get("selections")))
    else:
        errors.append(f"'mode' must be one of {MODES}")

    return errors


def serialize(recipe: dict) -> str:
    """Serialize recipe to JSON string."""
    recipe["modified"] = time.time()
    return json.dumps(recipe, indent=2)


def deserialize(data: str) -> dict:
    """Deserialize JSON string to recipe dict. Raises ValueError on invalid JSON or schema."""
    try:
        recipe = json.loads(data)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}") from e

    errors = validate(recipe)
    if errors:
        raise ValueError(f"Invalid recipe: {'; '.join(errors)}")

    return recipe
