"""
Schema Validator

Validates content payloads against component schemas. Validation is purely
structural: no I/O, no mutation. Errors are collected per field instead of
stopping at the first failure, so a caller can report every problem at once.

Functions:
    - validate:                    check one payload against a field schema
    - validate_content:            resolve a component and validate against it
    - validate_content_tree:       validate a node's whole ``content`` document
    - validate_schema_definition:  check a raw component schema before saving it
    - is_field_visible:            evaluate a field's display conditions against a payload
    - is_translatable_field:       field-name heuristic shared with translation sync
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from dateutil import parser as date_parser
from pydantic import AnyUrl, EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from content_engine.config import settings
from content_engine.exceptions import SchemaMismatchError
from content_engine.schemas.content import ValidationResult
from content_engine.schemas.fields import (
    CONDITION_OPERATORS,
    FIELD_TYPES,
    UNARY_OPERATORS,
    BaseField,
    BlocksField,
    BooleanField,
    ComponentReferenceField,
    Condition,
    DateField,
    DateTimeField,
    EmailField,
    JsonField,
    MultiSelectField,
    NumberField,
    SelectField,
    StoryReferenceField,
    StringField,
    UrlField,
    parse_field,
)

if TYPE_CHECKING:
    from content_engine.services.component_registry import ComponentRegistry

BOOLEAN_LITERALS = (0, 1, "0", "1", "true", "false")

_email_adapter = TypeAdapter(EmailStr)
_url_adapter = TypeAdapter(AnyUrl)


# ============== Translatable fields ==============


def is_translatable_field(name: str, keywords: Iterable[str] | None = None) -> bool:
    """Case-insensitive substring match of a field name against the keyword list."""
    if not isinstance(name, str) or name.startswith("_"):
        return False
    lowered = name.lower()
    words = settings.translatable_field_keywords if keywords is None else keywords
    return any(word.lower() in lowered for word in words)


def make_translatable_predicate(keywords: Iterable[str] | None = None) -> Callable[[str], bool]:
    """Bind a keyword list into a reusable ``name -> bool`` predicate."""
    words = tuple(settings.translatable_field_keywords if keywords is None else keywords)
    return lambda name: is_translatable_field(name, words)


# ============== Payload validation ==============


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _fmt(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else str(number)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str):
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def _check_string(field: StringField, value: Any) -> str | None:
    if not isinstance(value, str):
        return "Value must be a string"
    if field.min_length is not None and len(value) < field.min_length:
        return f"Value must be at least {field.min_length} characters"
    if field.max_length is not None and len(value) > field.max_length:
        return f"Value must not exceed {field.max_length} characters"
    if field.pattern:
        try:
            if re.search(field.pattern, value) is None:
                return "Value does not match the required pattern"
        except re.error:
            return None
    return None


def _check_number(field: NumberField, value: Any) -> str | None:
    if not _is_number(value):
        return "Value must be a number"
    number = float(value)
    if field.min is not None and number < field.min:
        return f"Value must be at least {_fmt(field.min)}"
    if field.max is not None and number > field.max:
        return f"Value must not exceed {_fmt(field.max)}"
    return None


def _check_boolean(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, str)) and value in BOOLEAN_LITERALS:
        return None
    return "Value must be a boolean"


def _check_email(value: Any) -> str | None:
    if not isinstance(value, str):
        return "Value must be a valid email address"
    try:
        _email_adapter.validate_python(value)
    except PydanticValidationError:
        return "Value must be a valid email address"
    return None


def _check_url(value: Any) -> str | None:
    if not isinstance(value, str):
        return "Value must be a valid URL"
    try:
        _url_adapter.validate_python(value)
    except PydanticValidationError:
        return "Value must be a valid URL"
    return None


def _check_date(value: Any) -> str | None:
    if not isinstance(value, str):
        return "Date must be a string"
    try:
        date_parser.parse(value)
    except (ValueError, OverflowError):
        return "Value must be a valid date"
    return None


def _check_select(field: SelectField, value: Any) -> str | None:
    if value not in field.option_values():
        return "Value must be one of the allowed options"
    return None


def _check_multiselect(field: MultiSelectField, value: Any) -> str | None:
    if not isinstance(value, list):
        return "Value must be an array"
    allowed = field.option_values()
    if any(item not in allowed for item in value):
        return "All values must be from the allowed options"
    return None


def _check_json(value: Any) -> str | None:
    if isinstance(value, (dict, list)):
        return None
    if not isinstance(value, str):
        return "JSON value must be a string or array"
    try:
        json.loads(value)
    except json.JSONDecodeError:
        return "Value must be valid JSON"
    return None


def _check_story_reference(value: Any) -> str | None:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return "Value must be a story reference"
    return None


def _check_blocks(
    field: BlocksField,
    value: Any,
    path: str,
    registry: ComponentRegistry | None,
) -> dict[str, str]:
    if not isinstance(value, list):
        return {path: "Value must be an array of blocks"}
    if field.maximum is not None and len(value) > field.maximum:
        return {path: f"Value must not contain more than {field.maximum} blocks"}

    errors: dict[str, str] = {}
    seen_uids: set[str] = set()
    for index, block in enumerate(value):
        block_path = f"{path}.{index}"
        if not isinstance(block, dict):
            errors[block_path] = "Each block must be an object"
            continue
        component = block.get("component")
        if not isinstance(component, str) or not component:
            errors[block_path] = "Each block must specify a component"
            continue
        uid = block.get("_uid")
        if not isinstance(uid, str) or not uid:
            errors[block_path] = "Each block must have a unique _uid"
            continue
        if uid in seen_uids:
            errors[block_path] = f"Duplicate _uid '{uid}'"
            continue
        seen_uids.add(uid)
        if field.component_whitelist and component not in field.component_whitelist:
            errors[block_path] = f"Component '{component}' is not allowed here"
            continue
        errors.update(_validate_instance(block, component, block_path, registry))
    return errors


def _check_component_reference(
    field: ComponentReferenceField,
    value: Any,
    path: str,
    registry: ComponentRegistry | None,
) -> dict[str, str]:
    if not isinstance(value, dict):
        return {path: "Value must be a component object"}
    component = value.get("component") or field.component
    if not component:
        return {path: "Each block must specify a component"}
    return _validate_instance(value, component, path, registry)


def _validate_instance(
    instance: dict[str, Any],
    component: str,
    path: str,
    registry: ComponentRegistry | None,
) -> dict[str, str]:
    """Recurse into a component instance using its component's own schema."""
    if registry is None:
        return {}
    try:
        schema = registry.get_schema(component)
    except SchemaMismatchError as exc:
        return {path: exc.message}
    return validate(instance, schema, registry, prefix=f"{path}.")


def _check_field(
    field: BaseField,
    value: Any,
    path: str,
    registry: ComponentRegistry | None,
) -> dict[str, str]:
    if isinstance(field, BlocksField):
        return _check_blocks(field, value, path, registry)
    if isinstance(field, ComponentReferenceField):
        return _check_component_reference(field, value, path, registry)

    if isinstance(field, StringField):
        error = _check_string(field, value)
    elif isinstance(field, NumberField):
        error = _check_number(field, value)
    elif isinstance(field, BooleanField):
        error = _check_boolean(value)
    elif isinstance(field, EmailField):
        error = _check_email(value)
    elif isinstance(field, UrlField):
        error = _check_url(value)
    elif isinstance(field, (DateField, DateTimeField)):
        error = _check_date(value)
    elif isinstance(field, SelectField):
        error = _check_select(field, value)
    elif isinstance(field, MultiSelectField):
        error = _check_multiselect(field, value)
    elif isinstance(field, JsonField):
        error = _check_json(value)
    elif isinstance(field, StoryReferenceField):
        error = _check_story_reference(value)
    else:
        # image, file, asset, link, color, table: presence is the only rule
        error = None
    return {path: error} if error else {}


# ============== Conditional fields ==============


def _evaluate_condition(condition: Condition, data: dict[str, Any]) -> bool:
    if not condition.field:
        return True
    actual = data.get(condition.field)
    expected = condition.value
    operator = condition.operator

    if operator in ("equals", "=="):
        return actual == expected
    if operator in ("not_equals", "!="):
        return actual != expected
    if operator in ("contains", "not_contains"):
        if not isinstance(actual, str) or not isinstance(expected, str):
            return False
        return (expected in actual) == (operator == "contains")
    if operator in ("in", "not_in"):
        if not isinstance(expected, list):
            return False
        return (actual in expected) == (operator == "in")
    if operator in ("greater_than", ">", "less_than", "<", "greater_equal", ">=", "less_equal", "<="):
        if not (_is_number(actual) and _is_number(expected)):
            return False
        left, right = float(actual), float(expected)
        if operator in ("greater_than", ">"):
            return left > right
        if operator in ("less_than", "<"):
            return left < right
        if operator in ("greater_equal", ">="):
            return left >= right
        return left <= right
    if operator in ("empty", "not_empty"):
        empty = not actual or actual == "0"
        return empty == (operator == "empty")
    if operator == "is_true":
        return actual is True or actual in ("true", "1") or (type(actual) is int and actual == 1)
    if operator == "is_false":
        return actual is False or actual in ("false", "0") or (type(actual) is int and actual == 0)
    return True


def is_field_visible(field: BaseField, data: dict[str, Any]) -> bool:
    """A field is shown only when every one of its conditions holds for ``data``."""
    return all(_evaluate_condition(condition, data) for condition in field.conditions)


def validate(
    payload: dict[str, Any],
    schema: list[BaseField] | list[dict[str, Any]],
    registry: ComponentRegistry | None = None,
    prefix: str = "",
) -> dict[str, str]:
    """Validate ``payload`` against ``schema``.

    Returns a mapping of field key to error message; an empty mapping means
    the payload is valid. Nested block errors use dotted keys such as
    ``body.0.title``. Fields hidden by their ``conditions`` are skipped, so a
    hidden required field is not required. When ``registry`` is omitted,
    nested blocks are only checked structurally.
    """
    data = payload if isinstance(payload, dict) else {}
    fields = [field for field in map(parse_field, schema) if is_field_visible(field, data)]
    errors: dict[str, str] = {}

    for field in fields:
        path = f"{prefix}{field.key}"
        value = data.get(field.key)

        if _is_empty(value):
            if field.required:
                errors[path] = f"Field '{field.key}' is required"
            continue

        errors.update(_check_field(field, value, path, registry))

    return errors


def validate_content(
    payload: dict[str, Any],
    component_ref: str,
    registry: ComponentRegistry,
) -> ValidationResult:
    """Validate one component instance.

    Raises:
        SchemaMismatchError: if ``component_ref`` itself cannot be resolved.
    """
    schema = registry.get_schema(component_ref)
    return ValidationResult.from_errors(validate(payload, schema, registry))


def validate_content_tree(content: dict[str, Any] | None, registry: ComponentRegistry | None) -> dict[str, str]:
    """Validate a node's ``content`` document (a top-level ``body`` array of blocks)."""
    if not content:
        return {}
    if not isinstance(content, dict) or not isinstance(content.get("body"), list):
        return {"body": "Content must have a body array"}
    body_field = BlocksField(key="body", type="blocks")
    return _check_blocks(body_field, content["body"], "body", registry)


# ============== Schema definition checks ==============


def validate_schema_definition(raw_fields: Any) -> dict[str, list[str]]:
    """Check a raw component schema before it is stored.

    Returns a mapping of field key (or list index when the key is missing) to
    the list of problems found for that field.
    """
    if not isinstance(raw_fields, list):
        return {"schema": ["Schema must be a list of field definitions"]}

    errors: dict[str, list[str]] = {}
    seen: set[str] = set()

    for index, raw in enumerate(raw_fields):
        if not isinstance(raw, dict):
            errors.setdefault(str(index), []).append("Field definition must be an object")
            continue

        key = raw.get("key")
        name = key if isinstance(key, str) and key else str(index)
        problems: list[str] = []

        if not isinstance(key, str) or not key:
            problems.append("Field key is required")
        elif key in seen:
            problems.append(f"Duplicate field key '{key}'")
        else:
            seen.add(key)

        field_type = raw.get("type")
        if not field_type:
            problems.append("Field type is required")
        elif field_type not in FIELD_TYPES:
            problems.append(f"Invalid field type '{field_type}'")
        else:
            problems.extend(_check_constraints(field_type, raw))
            if not problems:
                try:
                    parse_field(raw)
                except PydanticValidationError as exc:
                    for error in exc.errors():
                        location = ".".join(str(part) for part in error["loc"][1:]) or "field"
                        problems.append(f"{location}: {error['msg']}")

        if problems:
            errors.setdefault(name, []).extend(problems)

    return errors


def _check_constraints(field_type: str, raw: dict[str, Any]) -> list[str]:
    problems: list[str] = []

    if field_type in ("text", "textarea", "markdown", "richtext"):
        lengths = {
            bound: raw.get(bound, raw.get(alias))
            for bound, alias in (("min_length", "minLength"), ("max_length", "maxLength"))
        }
        for bound, value in lengths.items():
            if value is not None and not _is_number(value):
                problems.append(f"{bound} must be numeric")
        if _is_number(lengths["min_length"]) and _is_number(lengths["max_length"]):
            if float(lengths["min_length"]) > float(lengths["max_length"]):
                problems.append("min_length must not exceed max_length")
        if raw.get("pattern"):
            try:
                re.compile(raw["pattern"])
            except (re.error, TypeError):
                problems.append("regex pattern is invalid")

    elif field_type == "number":
        for bound in ("min", "max", "step"):
            if bound in raw and raw[bound] is not None and not _is_number(raw[bound]):
                problems.append(f"{bound} must be numeric")
        if _is_number(raw.get("min")) and _is_number(raw.get("max")):
            if float(raw["min"]) > float(raw["max"]):
                problems.append("min must not exceed max")

    elif field_type in ("select", "multiselect"):
        options = raw.get("options")
        if not isinstance(options, list):
            problems.append(f"options array is required for {field_type} fields")
        elif not options:
            problems.append("options array cannot be empty")
        elif any(not isinstance(option, dict) or "value" not in option for option in options):
            problems.append("Each option must have name and value properties")

    elif field_type == "blocks":
        whitelist = raw.get("component_whitelist")
        if whitelist is not None and not isinstance(whitelist, list):
            problems.append("component_whitelist must be an array")
        if raw.get("maximum") is not None and not _is_number(raw["maximum"]):
            problems.append("maximum must be numeric")

    elif field_type == "table":
        if not isinstance(raw.get("columns"), list):
            problems.append("columns array is required for table fields")

    if "conditions" in raw:
        problems.extend(_check_conditions(raw["conditions"]))

    return problems


def _check_conditions(conditions: Any) -> list[str]:
    if not isinstance(conditions, list):
        return ["conditions must be an array"]

    problems: list[str] = []
    for index, condition in enumerate(conditions):
        if not isinstance(condition, dict):
            problems.append(f"Condition {index} must be an object")
            continue
        if not condition.get("field"):
            problems.append(f"Condition {index} must have a field property")
        operator = condition.get("operator")
        if operator is None:
            problems.append(f"Condition {index} must have an operator property")
        elif not isinstance(operator, str) or operator not in CONDITION_OPERATORS:
            problems.append(f"Condition {index} has invalid operator '{operator}'")
        if not (isinstance(operator, str) and operator in UNARY_OPERATORS) and condition.get("value") is None:
            problems.append(f"Condition {index} must have a value property")
    return problems
