"""
Tests for the schema validator

Covers per-type field checks, nested block validation through the component
registry, and checks on component schema definitions.
"""

import pytest

from content_engine.exceptions import SchemaMismatchError
from content_engine.schemas.fields import NumberField, TextField, parse_field
from content_engine.services.component_registry import ComponentRegistry
from content_engine.services.schema_validator import (
    is_field_visible,
    is_translatable_field,
    make_translatable_predicate,
    validate,
    validate_content,
    validate_content_tree,
    validate_schema_definition,
)


class TestStringFields:
    """Test text-like field constraints"""

    def test_max_length_exceeded(self):
        """An 11 character title against a 10 character limit"""
        schema = [{"key": "title", "type": "text", "required": True, "max_length": 10}]
        errors = validate({"title": "HelloWorld!"}, schema)
        assert errors == {"title": "Value must not exceed 10 characters"}

    def test_min_length(self):
        schema = [{"key": "title", "type": "textarea", "min_length": 5}]
        assert validate({"title": "abc"}, schema) == {"title": "Value must be at least 5 characters"}
        assert validate({"title": "abcdef"}, schema) == {}

    def test_non_string_value(self):
        schema = [{"key": "title", "type": "text"}]
        assert validate({"title": 42}, schema) == {"title": "Value must be a string"}

    def test_pattern(self):
        schema = [{"key": "code", "type": "text", "pattern": r"^[A-Z]{3}$"}]
        assert validate({"code": "ABC"}, schema) == {}
        assert validate({"code": "abc"}, schema) == {"code": "Value does not match the required pattern"}

    def test_camel_case_length_constraints(self):
        schema = [{"key": "title", "type": "text", "required": True, "maxLength": 10, "minLength": 3}]
        assert validate({"title": "HelloWorld!"}, schema) == {"title": "Value must not exceed 10 characters"}
        assert validate({"title": "Hi"}, schema) == {"title": "Value must be at least 3 characters"}

        field = parse_field(schema[0])
        assert (field.min_length, field.max_length) == (3, 10)


class TestRequiredFields:
    """Test required field reporting"""

    def test_missing_required_field_reported_alone(self):
        """Only the missing field is reported"""
        schema = [
            {"key": "title", "type": "text", "required": True},
            {"key": "subtitle", "type": "text"},
            {"key": "count", "type": "number"},
        ]
        errors = validate({"subtitle": "ok", "count": 3}, schema)
        assert errors == {"title": "Field 'title' is required"}

    @pytest.mark.parametrize("empty", [None, "", [], {}])
    def test_empty_values_count_as_missing(self, empty):
        schema = [{"key": "title", "type": "text", "required": True}]
        assert validate({"title": empty}, schema) == {"title": "Field 'title' is required"}

    def test_optional_empty_value_skips_type_checks(self):
        schema = [{"key": "email", "type": "email"}]
        assert validate({"email": ""}, schema) == {}

    def test_all_errors_collected(self):
        schema = [
            {"key": "title", "type": "text", "required": True},
            {"key": "count", "type": "number"},
            {"key": "active", "type": "boolean"},
        ]
        errors = validate({"count": "many", "active": "yes"}, schema)
        assert set(errors) == {"title", "count", "active"}

    def test_valid_payload_returns_no_errors(self):
        schema = [
            {"key": "title", "type": "text", "required": True, "max_length": 20},
            {"key": "count", "type": "number", "min": 0, "max": 10},
            {"key": "active", "type": "boolean"},
            {"key": "email", "type": "email"},
            {"key": "website", "type": "url"},
            {"key": "starts", "type": "date"},
        ]
        payload = {
            "title": "Hello",
            "count": 5,
            "active": True,
            "email": "editor@example.com",
            "website": "https://example.com",
            "starts": "2026-03-01",
        }
        assert validate(payload, schema) == {}


class TestScalarFields:
    """Test numbers, booleans, emails, urls and dates"""

    def test_number_bounds(self):
        schema = [{"key": "rating", "type": "number", "min": 1, "max": 5}]
        assert validate({"rating": 0}, schema) == {"rating": "Value must be at least 1"}
        assert validate({"rating": 6}, schema) == {"rating": "Value must not exceed 5"}
        assert validate({"rating": "3"}, schema) == {}

    def test_boolean_is_not_a_number(self):
        schema = [{"key": "rating", "type": "number"}]
        assert validate({"rating": True}, schema) == {"rating": "Value must be a number"}

    def test_boolean_literals(self):
        schema = [{"key": "flag", "type": "boolean"}]
        assert validate({"flag": "true"}, schema) == {}
        assert validate({"flag": 1}, schema) == {}
        assert validate({"flag": "maybe"}, schema) == {"flag": "Value must be a boolean"}

    def test_email(self):
        schema = [{"key": "email", "type": "email"}]
        assert validate({"email": "not-an-email"}, schema) == {"email": "Value must be a valid email address"}

    def test_url(self):
        schema = [{"key": "link", "type": "url"}]
        assert validate({"link": "not a url"}, schema) == {"link": "Value must be a valid URL"}

    def test_date(self):
        schema = [{"key": "starts", "type": "datetime"}]
        assert validate({"starts": "2026-01-15T10:30:00"}, schema) == {}
        assert validate({"starts": "yesterday-ish"}, schema) == {"starts": "Value must be a valid date"}
        assert validate({"starts": 20260115}, schema) == {"starts": "Date must be a string"}


class TestOptionFields:
    """Test select and multiselect fields"""

    OPTIONS = [{"name": "Red", "value": "red"}, {"name": "Blue", "value": "blue"}]

    def test_select(self):
        schema = [{"key": "color", "type": "select", "options": self.OPTIONS}]
        assert validate({"color": "red"}, schema) == {}
        assert validate({"color": "green"}, schema) == {"color": "Value must be one of the allowed options"}

    def test_multiselect(self):
        schema = [{"key": "colors", "type": "multiselect", "options": self.OPTIONS}]
        assert validate({"colors": ["red", "blue"]}, schema) == {}
        assert validate({"colors": "red"}, schema) == {"colors": "Value must be an array"}
        assert validate({"colors": ["red", "green"]}, schema) == {
            "colors": "All values must be from the allowed options"
        }

    def test_option_label_alias(self):
        field = parse_field({"key": "size", "type": "select", "options": [{"label": "Small", "value": "s"}]})
        assert field.options[0].name == "Small"

    def test_no_options_allows_nothing(self):
        assert validate({"color": "red"}, [{"key": "color", "type": "select"}]) == {
            "color": "Value must be one of the allowed options"
        }
        assert validate({"colors": ["red"]}, [{"key": "colors", "type": "multiselect", "options": []}]) == {
            "colors": "All values must be from the allowed options"
        }


class TestConditionalFields:
    """Test fields shown only when their conditions hold"""

    SCHEMA = [
        {
            "key": "link_type",
            "type": "select",
            "options": [{"name": "Internal", "value": "internal"}, {"name": "External", "value": "external"}],
        },
        {
            "key": "url",
            "type": "url",
            "required": True,
            "conditions": [{"field": "link_type", "operator": "equals", "value": "external"}],
        },
    ]

    def test_hidden_required_field_not_required(self):
        assert validate({"link_type": "internal"}, self.SCHEMA) == {}

    def test_visible_field_is_validated(self):
        assert validate({"link_type": "external"}, self.SCHEMA) == {"url": "Field 'url' is required"}
        assert validate({"link_type": "external", "url": "nope"}, self.SCHEMA) == {"url": "Value must be a valid URL"}

    def test_hidden_field_value_is_ignored(self):
        assert validate({"link_type": "internal", "url": "nope"}, self.SCHEMA) == {}

    @pytest.mark.parametrize(
        "condition, data, visible",
        [
            ({"field": "kind", "operator": "!=", "value": "a"}, {"kind": "b"}, True),
            ({"field": "kind", "operator": "contains", "value": "ell"}, {"kind": "hello"}, True),
            ({"field": "kind", "operator": "not_contains", "value": "ell"}, {"kind": "hello"}, False),
            ({"field": "kind", "operator": "in", "value": ["a", "b"]}, {"kind": "b"}, True),
            ({"field": "kind", "operator": "not_in", "value": ["a", "b"]}, {"kind": "b"}, False),
            ({"field": "count", "operator": "greater_than", "value": 3}, {"count": "5"}, True),
            ({"field": "count", "operator": "<=", "value": 3}, {"count": 5}, False),
            ({"field": "count", "operator": ">", "value": 3}, {"count": "many"}, False),
            ({"field": "kind", "operator": "empty"}, {}, True),
            ({"field": "kind", "operator": "not_empty"}, {"kind": "x"}, True),
            ({"field": "flag", "operator": "is_true"}, {"flag": "1"}, True),
            ({"field": "flag", "operator": "is_false"}, {"flag": True}, False),
            ({"field": "flag", "operator": "unknown"}, {}, True),
        ],
    )
    def test_operators(self, condition, data, visible):
        field = parse_field({"key": "extra", "type": "text", "conditions": [condition]})
        assert is_field_visible(field, data) is visible

    def test_all_conditions_must_hold(self):
        field = parse_field(
            {
                "key": "extra",
                "type": "text",
                "conditions": [
                    {"field": "kind", "operator": "equals", "value": "a"},
                    {"field": "flag", "operator": "is_true"},
                ],
            }
        )
        assert is_field_visible(field, {"kind": "a", "flag": True})
        assert not is_field_visible(field, {"kind": "a", "flag": False})


class TestJsonField:
    """Test json fields"""

    def test_json_values(self):
        schema = [{"key": "data", "type": "json"}]
        assert validate({"data": '{"a": 1}'}, schema) == {}
        assert validate({"data": {"a": 1}}, schema) == {}
        assert validate({"data": "{broken"}, schema) == {"data": "Value must be valid JSON"}
        assert validate({"data": 12}, schema) == {"data": "JSON value must be a string or array"}


class TestNestedBlocks:
    """Test blocks validated through the component registry"""

    def test_nested_error_uses_dotted_path(self, registry):
        schema = [{"key": "body", "type": "blocks"}]
        payload = {"body": [{"_uid": "a1", "component": "hero", "title": "x" * 61}]}
        errors = validate(payload, schema, registry)
        assert errors == {"body.0.title": "Value must not exceed 60 characters"}

    def test_deeply_nested_blocks(self, registry):
        schema = [{"key": "body", "type": "blocks"}]
        payload = {
            "body": [
                {
                    "_uid": "s1",
                    "component": "section",
                    "body": [{"_uid": "h1", "component": "hero"}],
                }
            ]
        }
        errors = validate(payload, schema, registry)
        assert errors == {"body.0.body.0.title": "Field 'title' is required"}

    def test_unknown_component_reported_under_block(self, registry):
        schema = [{"key": "body", "type": "blocks"}]
        payload = {"body": [{"_uid": "z1", "component": "carousel"}]}
        errors = validate(payload, schema, registry)
        assert errors == {"body.0": "Component 'carousel' not found"}

    def test_component_whitelist(self, registry):
        payload = {"body": [{"_uid": "c1", "component": "cta_section", "title": "Go"}]}
        errors = validate(payload, registry.get_schema("section"), registry)
        assert errors == {"body.0": "Component 'cta_section' is not allowed here"}

    def test_block_structure(self):
        schema = [{"key": "body", "type": "blocks", "maximum": 2}]
        assert validate({"body": "nope"}, schema) == {"body": "Value must be an array of blocks"}
        assert validate({"body": [{"_uid": "1", "component": "a"}] * 3}, schema) == {
            "body": "Value must not contain more than 2 blocks"
        }
        errors = validate({"body": [{"_uid": "1"}, {"component": "a"}]}, schema)
        assert errors == {
            "body.0": "Each block must specify a component",
            "body.1": "Each block must have a unique _uid",
        }

    def test_duplicate_uid(self):
        schema = [{"key": "body", "type": "blocks"}]
        payload = {"body": [{"_uid": "same", "component": "a"}, {"_uid": "same", "component": "b"}]}
        assert validate(payload, schema) == {"body.1": "Duplicate _uid 'same'"}

    def test_component_reference_field(self, registry):
        schema = [{"key": "cta", "type": "component", "component": "cta_section"}]
        assert validate({"cta": {"title": "Join"}}, schema, registry) == {}
        assert validate({"cta": {}}, schema, registry) == {}
        assert validate({"cta": {"button_text": "Go"}}, schema, registry) == {
            "cta.title": "Field 'title' is required"
        }
        assert validate({"cta": "text"}, schema, registry) == {"cta": "Value must be a component object"}


class TestValidateContent:
    """Test component-level and document-level entry points"""

    def test_validate_content_result(self, registry):
        result = validate_content({"title": "Hi"}, "hero", registry)
        assert result.valid is True
        assert result.errors == {}

        result = validate_content({}, "hero", registry)
        assert result.valid is False
        assert result.errors == {"title": "Field 'title' is required"}

    def test_validate_content_unknown_component_raises(self, registry):
        with pytest.raises(SchemaMismatchError) as exc_info:
            validate_content({}, "missing", registry)
        assert exc_info.value.component_ref == "missing"

    def test_validate_content_tree(self, registry, page_content):
        assert validate_content_tree(page_content, registry) == {}
        assert validate_content_tree({}, registry) == {}
        assert validate_content_tree({"title": "no body"}, registry) == {"body": "Content must have a body array"}

    def test_typed_fields_accepted_as_schema(self):
        schema = [TextField(key="title", type="text", required=True), NumberField(key="n", type="number", max=3)]
        assert validate({"title": "x", "n": 4}, schema) == {"n": "Value must not exceed 3"}

    def test_registry_with_typed_schema(self):
        registry = ComponentRegistry({"quote": [TextField(key="text", type="text", required=True)]})
        assert "quote" in registry
        assert len(registry) == 1
        assert validate_content({}, "quote", registry).errors == {"text": "Field 'text' is required"}


class TestSchemaDefinition:
    """Test validation of component schema definitions"""

    def test_valid_schema(self):
        schema = [
            {"key": "title", "type": "text", "required": True, "max_length": 60},
            {"key": "rating", "type": "number", "min": 1, "max": 5},
            {"key": "color", "type": "select", "options": [{"name": "Red", "value": "red"}]},
            {"key": "body", "type": "blocks", "component_whitelist": ["hero"]},
        ]
        assert validate_schema_definition(schema) == {}

    def test_not_a_list(self):
        assert validate_schema_definition({"key": "x"}) == {"schema": ["Schema must be a list of field definitions"]}

    def test_missing_key_and_type(self):
        errors = validate_schema_definition([{"type": "text"}, {"key": "title"}])
        assert errors == {"0": ["Field key is required"], "title": ["Field type is required"]}

    def test_duplicate_key(self):
        errors = validate_schema_definition([{"key": "a", "type": "text"}, {"key": "a", "type": "number"}])
        assert errors == {"a": ["Duplicate field key 'a'"]}

    def test_invalid_type(self):
        assert validate_schema_definition([{"key": "a", "type": "hologram"}]) == {"a": ["Invalid field type 'hologram'"]}

    def test_constraint_checks(self):
        errors = validate_schema_definition(
            [
                {"key": "title", "type": "text", "min_length": 10, "max_length": 5},
                {"key": "rating", "type": "number", "min": 5, "max": 1},
                {"key": "color", "type": "select"},
                {"key": "size", "type": "multiselect", "options": []},
                {"key": "pattern", "type": "text", "pattern": "(unclosed"},
                {"key": "grid", "type": "table"},
            ]
        )
        assert errors == {
            "title": ["min_length must not exceed max_length"],
            "rating": ["min must not exceed max"],
            "color": ["options array is required for select fields"],
            "size": ["options array cannot be empty"],
            "pattern": ["regex pattern is invalid"],
            "grid": ["columns array is required for table fields"],
        }

    def test_options_need_values(self):
        errors = validate_schema_definition([{"key": "c", "type": "select", "options": [{"name": "Red"}]}])
        assert errors == {"c": ["Each option must have name and value properties"]}

    def test_camel_case_length_bounds_checked(self):
        errors = validate_schema_definition([{"key": "title", "type": "text", "minLength": 10, "maxLength": 5}])
        assert errors == {"title": ["min_length must not exceed max_length"]}

    def test_valid_conditions(self):
        schema = [
            {"key": "kind", "type": "text"},
            {"key": "extra", "type": "text", "conditions": [{"field": "kind", "operator": "not_empty"}]},
        ]
        assert validate_schema_definition(schema) == {}

    def test_condition_checks(self):
        errors = validate_schema_definition(
            [
                {"key": "a", "type": "text", "conditions": {"field": "x"}},
                {
                    "key": "b",
                    "type": "text",
                    "conditions": [
                        "kind",
                        {"operator": "equals", "value": 1},
                        {"field": "kind", "value": 1},
                        {"field": "kind", "operator": "roughly", "value": 1},
                        {"field": "kind", "operator": "equals"},
                    ],
                },
            ]
        )
        assert errors == {
            "a": ["conditions must be an array"],
            "b": [
                "Condition 0 must be an object",
                "Condition 1 must have a field property",
                "Condition 2 must have an operator property",
                "Condition 3 has invalid operator 'roughly'",
                "Condition 4 must have a value property",
            ],
        }


class TestTranslatableFields:
    """Test the translatable field-name heuristic"""

    @pytest.mark.parametrize(
        "name",
        ["title", "subtitle", "button_text", "Meta_Description", "alt_text", "body", "headline"],
    )
    def test_translatable_names(self, name):
        assert is_translatable_field(name)

    @pytest.mark.parametrize("name", ["alignment", "component", "_uid", "color", "url"])
    def test_non_translatable_names(self, name):
        assert not is_translatable_field(name)

    def test_custom_keywords(self):
        predicate = make_translatable_predicate(["label"])
        assert predicate("button_label")
        assert not predicate("title")
