"""
Custom Exception Classes for the Content Engine

This module defines the engine's exception taxonomy. Each exception carries
an HTTP status code and a machine-readable error code so that the HTTP layer
in front of the engine can render consistent error responses.

Expected "bad input" outcomes (validation errors, refused locks) are normally
returned as structured values by the services; these exceptions are raised
only where a caller explicitly asks for a guard, or where an invariant was
already broken before the call (cycles, unresolvable components).
"""

import enum
from datetime import datetime
from typing import Any

from fastapi import status


class ErrorCode(str, enum.Enum):
    """Machine-readable error codes."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    VALIDATION_DUPLICATE_RESOURCE = "VALIDATION_DUPLICATE_RESOURCE"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_CONTENT_NOT_FOUND = "RESOURCE_CONTENT_NOT_FOUND"
    RESOURCE_COMPONENT_NOT_FOUND = "RESOURCE_COMPONENT_NOT_FOUND"
    CONTENT_LOCKED = "CONTENT_LOCKED"
    TRANSLATION_DUPLICATE = "TRANSLATION_DUPLICATE"
    TREE_CYCLE_DETECTED = "TREE_CYCLE_DETECTED"
    SCHEMA_MISMATCH = "SCHEMA_MISMATCH"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    INVALID_OPERATION = "INVALID_OPERATION"


class EngineError(Exception):
    """Base exception class for all content engine exceptions"""

    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)


# ============================================================================
# Validation Exceptions
# ============================================================================


class ValidationError(EngineError):
    """Raised when a content payload fails schema validation.

    ``errors`` maps each offending field key to its message.
    """

    error_code = ErrorCode.VALIDATION_FAILED

    def __init__(self, errors: dict[str, str], message: str = "Content validation failed"):
        self.errors = dict(errors)
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"errors": self.errors},
        )


class SchemaMismatchError(EngineError):
    """Raised when a referenced component cannot be resolved"""

    error_code = ErrorCode.SCHEMA_MISMATCH

    def __init__(self, component_ref: str, message: str | None = None):
        self.component_ref = component_ref
        super().__init__(
            message=message or f"Component '{component_ref}' not found",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"component": component_ref},
        )


# ============================================================================
# Resource Exceptions
# ============================================================================


class ResourceNotFoundError(EngineError):
    """Base class for resource not found errors"""

    error_code = ErrorCode.RESOURCE_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Any | None = None):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ContentNotFoundError(ResourceNotFoundError):
    """Raised when a content node is not found"""

    error_code = ErrorCode.RESOURCE_CONTENT_NOT_FOUND

    def __init__(self, node_id: Any | None = None):
        super().__init__(resource_type="Content node", resource_id=node_id)


class ComponentNotFoundError(ResourceNotFoundError):
    """Raised when a component is not found"""

    error_code = ErrorCode.RESOURCE_COMPONENT_NOT_FOUND

    def __init__(self, component_id: Any | None = None):
        super().__init__(resource_type="Component", resource_id=component_id)


class DuplicateResourceError(EngineError):
    """Raised when attempting to create a duplicate resource"""

    error_code = ErrorCode.VALIDATION_DUPLICATE_RESOURCE

    def __init__(self, resource_type: str, field: str, value: Any):
        super().__init__(
            message=f"{resource_type} with {field} '{value}' already exists",
            status_code=status.HTTP_409_CONFLICT,
            details={"resource_type": resource_type, "field": field, "value": value},
        )


# ============================================================================
# Locking & Translation Exceptions
# ============================================================================


class LockConflictError(EngineError):
    """Raised when a node is locked by someone else"""

    error_code = ErrorCode.CONTENT_LOCKED

    def __init__(self, node_id: Any, locked_by: str | None, locked_until: datetime | None):
        who = locked_by or "another user"
        message = f"Content node '{node_id}' is locked by {who}"
        if locked_until is not None:
            message += f" until {locked_until.isoformat()}"
        super().__init__(
            message=message,
            status_code=status.HTTP_423_LOCKED,
            details={
                "node_id": node_id,
                "locked_by": locked_by,
                "locked_until": locked_until.isoformat() if locked_until else None,
            },
        )


class DuplicateTranslationError(EngineError):
    """Raised when the translation group already has the target language"""

    error_code = ErrorCode.TRANSLATION_DUPLICATE

    def __init__(self, language: str, translation_group_id: Any | None = None):
        super().__init__(
            message=f"A translation for language '{language}' already exists",
            status_code=status.HTTP_409_CONFLICT,
            details={"language": language, "translation_group_id": translation_group_id},
        )


# ============================================================================
# Integrity Exceptions
# ============================================================================


class CycleDetectedError(EngineError):
    """Raised when an ancestor chain loops or exceeds the depth bound.

    This indicates a corrupted ``parent_id`` graph and needs manual repair.
    """

    error_code = ErrorCode.TREE_CYCLE_DETECTED

    def __init__(self, node_id: Any, chain: list[Any] | None = None):
        self.chain = list(chain or [])
        super().__init__(
            message=f"Cycle detected in the ancestor chain of node '{node_id}'",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"node_id": node_id, "chain": self.chain},
        )


class InvalidStatusTransitionError(EngineError):
    """Raised when an invalid status transition is attempted"""

    error_code = ErrorCode.INVALID_STATUS_TRANSITION

    def __init__(self, current_status: str, target_status: str, resource_type: str = "Content node"):
        super().__init__(
            message=f"Cannot transition {resource_type} from '{current_status}' to '{target_status}'",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"resource_type": resource_type, "current_status": current_status, "target_status": target_status},
        )


class InvalidOperationError(EngineError):
    """Raised when an operation is invalid in the current context"""

    error_code = ErrorCode.INVALID_OPERATION

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=details or {})
