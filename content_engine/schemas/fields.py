"""
Field definitions for component schemas.

A component schema is an ordered list of field definitions. Each field kind
is its own model carrying only the constraints meaningful to it; the
``type`` key selects the model. Unknown constraint keys are dropped when a
definition is parsed, so a ``max_length`` on a number field simply does not
exist.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter

FIELD_TYPES: tuple[str, ...] = (
    "text",
    "textarea",
    "markdown",
    "richtext",
    "number",
    "boolean",
    "date",
    "datetime",
    "select",
    "multiselect",
    "image",
    "file",
    "asset",
    "link",
    "email",
    "url",
    "color",
    "json",
    "table",
    "blocks",
    "story",
    "story-reference",
    "component",
    "component-reference",
)

STRING_TYPES = frozenset({"text", "textarea", "markdown", "richtext"})

CONDITION_OPERATORS: tuple[str, ...] = (
    "equals",
    "==",
    "not_equals",
    "!=",
    "contains",
    "not_contains",
    "in",
    "not_in",
    "greater_than",
    ">",
    "less_than",
    "<",
    "greater_equal",
    ">=",
    "less_equal",
    "<=",
    "empty",
    "not_empty",
    "is_true",
    "is_false",
)

# Operators that test the sibling value alone
UNARY_OPERATORS = frozenset({"empty", "not_empty", "is_true", "is_false"})


class Condition(BaseModel):
    """Display rule: the owning field is shown only when ``field`` satisfies ``operator``."""

    model_config = ConfigDict(frozen=True)

    field: str
    operator: str = "equals"
    value: Any = None


class BaseField(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    key: str = Field(..., min_length=1, description="Machine key of the field inside a block.")
    required: bool = False
    display_name: str | None = None
    description: str | None = None
    translatable: bool | None = Field(
        None, description="Explicit translatability; None defers to the field-name heuristic."
    )
    conditions: list[Condition] = Field(default_factory=list)


class StringField(BaseField):
    min_length: int | None = Field(None, ge=0, validation_alias=AliasChoices("min_length", "minLength"))
    max_length: int | None = Field(None, ge=0, validation_alias=AliasChoices("max_length", "maxLength"))
    pattern: str | None = None


class TextField(StringField):
    type: Literal["text"]


class TextareaField(StringField):
    type: Literal["textarea"]


class MarkdownField(StringField):
    type: Literal["markdown"]


class RichtextField(StringField):
    type: Literal["richtext"]


class NumberField(BaseField):
    type: Literal["number"]
    min: float | None = None
    max: float | None = None
    step: float | None = None


class BooleanField(BaseField):
    type: Literal["boolean"]


class DateField(BaseField):
    type: Literal["date"]


class DateTimeField(BaseField):
    type: Literal["datetime"]


class Option(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None = Field(None, validation_alias=AliasChoices("name", "label"))
    value: Any


class SelectField(BaseField):
    type: Literal["select"]
    options: list[Option] = Field(default_factory=list)

    def option_values(self) -> list[Any]:
        return [option.value for option in self.options]


class MultiSelectField(BaseField):
    type: Literal["multiselect"]
    options: list[Option] = Field(default_factory=list)

    def option_values(self) -> list[Any]:
        return [option.value for option in self.options]


class AssetField(BaseField):
    type: Literal["image", "file", "asset"]
    filetypes: list[str] | None = None
    asset_folder: str | None = None


class LinkField(BaseField):
    type: Literal["link"]


class EmailField(BaseField):
    type: Literal["email"]


class UrlField(BaseField):
    type: Literal["url"]


class ColorField(BaseField):
    type: Literal["color"]


class JsonField(BaseField):
    type: Literal["json"]


class TableField(BaseField):
    type: Literal["table"]
    columns: list[dict[str, Any]] | None = None


class BlocksField(BaseField):
    type: Literal["blocks"]
    component_whitelist: list[str] | None = None
    maximum: int | None = Field(None, ge=0)


class StoryReferenceField(BaseField):
    type: Literal["story", "story-reference"]


class ComponentReferenceField(BaseField):
    type: Literal["component", "component-reference"]
    component: str | None = Field(None, description="Technical name of the referenced component.")


FieldDefinition = Annotated[
    Union[
        TextField,
        TextareaField,
        MarkdownField,
        RichtextField,
        NumberField,
        BooleanField,
        DateField,
        DateTimeField,
        SelectField,
        MultiSelectField,
        AssetField,
        LinkField,
        EmailField,
        UrlField,
        ColorField,
        JsonField,
        TableField,
        BlocksField,
        StoryReferenceField,
        ComponentReferenceField,
    ],
    Field(discriminator="type"),
]

_schema_adapter = TypeAdapter(list[FieldDefinition])
_field_adapter = TypeAdapter(FieldDefinition)


def parse_field(raw: dict[str, Any] | BaseField) -> FieldDefinition:
    if isinstance(raw, BaseField):
        return raw
    return _field_adapter.validate_python(raw)


def parse_schema(raw: list[dict[str, Any]] | list[BaseField]) -> list[FieldDefinition]:
    """Parse a raw component schema into typed field definitions.

    Raises ``pydantic.ValidationError`` for unsupported types or malformed
    constraints; use ``validate_schema_definition`` for a per-field report.
    """
    return _schema_adapter.validate_python([f.model_dump() if isinstance(f, BaseField) else f for f in raw])
