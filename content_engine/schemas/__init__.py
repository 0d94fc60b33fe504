from .fields import FIELD_TYPES, FieldDefinition, parse_field, parse_schema
from .content import (
    Actor,
    Breadcrumb,
    ComponentCreate,
    ComponentUpdate,
    LockInfo,
    Locker,
    NodeCreate,
    NodeUpdate,
    TranslationStatusEntry,
    TreeFields,
    ValidationResult,
)

# Define the public API of this module
__all__ = [
    "FIELD_TYPES",
    "FieldDefinition",
    "parse_field",
    "parse_schema",
    "Actor",
    "Breadcrumb",
    "ComponentCreate",
    "ComponentUpdate",
    "LockInfo",
    "Locker",
    "NodeCreate",
    "NodeUpdate",
    "TranslationStatusEntry",
    "TreeFields",
    "ValidationResult",
]
