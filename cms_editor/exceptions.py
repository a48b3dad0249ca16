"""
Custom exception classes for the CMS content editor.

Every error carries a message, optional context and a list of recovery
suggestions so the dashboard can render something useful without having to
know which layer raised it.
"""

import logging
from typing import Optional, Dict, Any, List
from pathlib import Path

logger = logging.getLogger(__name__)


class ContentEditorError(Exception):
    """
    Base exception for content editor errors.

    Attributes:
        message: Error message
        context: Additional context information
        recovery_suggestions: List of suggested recovery actions
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 recovery_suggestions: Optional[List[str]] = None):
        self.message = message
        self.context = context or {}
        self.recovery_suggestions = recovery_suggestions or []
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def get_full_details(self) -> Dict[str, Any]:
        """Get complete error details including context and suggestions."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'context': self.context,
            'recovery_suggestions': self.recovery_suggestions
        }


class FieldPathError(ContentEditorError):
    """Raised when a field path cannot be parsed or resolved against a document tree."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(
            f"Invalid field path '{path}': {reason}",
            context={'path': path, 'reason': reason}
        )


class SchemaLoadError(ContentEditorError):
    """Raised when a schema file is missing, unreadable or structurally invalid."""

    def __init__(self, schema_name: str, message: str, problems: Optional[List[str]] = None):
        self.schema_name = schema_name
        self.problems = problems or []
        super().__init__(
            message,
            context={'schema': schema_name, 'problems': self.problems},
            recovery_suggestions=[
                "Check that the schema file exists in the schemas directory",
                "Verify YAML syntax is correct",
                "Make sure every enum field declares its choices"
            ]
        )


class ConfigurationLoadError(ContentEditorError):
    """
    Exception raised when configuration file loading fails.

    This includes YAML parsing errors, file not found, permission issues, etc.
    """

    def __init__(self, config_path: Path, original_error: Exception,
                 message: Optional[str] = None):
        self.config_path = config_path
        self.original_error = original_error

        if message is None:
            message = f"Failed to load configuration from {config_path}: {str(original_error)}"

        context = {
            'config_path': str(config_path),
            'original_error_type': type(original_error).__name__,
            'original_error_message': str(original_error)
        }

        recovery_suggestions = [
            "Check if config.yaml exists and is readable",
            "Verify YAML syntax is correct",
            "Application will use default configuration as fallback"
        ]

        super().__init__(message, context, recovery_suggestions)


class ValidationFailedError(ContentEditorError):
    """
    Local validation failure raised before any network call.

    Always recoverable; surfaced as per-field messages and never logged as an activity.
    """

    def __init__(self, doc_type: str, field_errors: Dict[str, str]):
        self.doc_type = doc_type
        self.field_errors = dict(field_errors)
        super().__init__(
            f"{len(self.field_errors)} field(s) failed validation for '{doc_type}'",
            context={'doc_type': doc_type, 'field_errors': self.field_errors},
            recovery_suggestions=["Correct the highlighted fields and save again"]
        )


class RemoteAPIError(ContentEditorError):
    """Base class for failures reported by the remote content API."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 context: Optional[Dict[str, Any]] = None,
                 recovery_suggestions: Optional[List[str]] = None):
        self.status_code = status_code
        merged = {'status_code': status_code}
        merged.update(context or {})
        super().__init__(message, merged, recovery_suggestions)


class TransportError(RemoteAPIError):
    """Remote unreachable or a non-2xx response without a more specific meaning."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            status_code=status_code,
            context=context,
            recovery_suggestions=[
                "Check your network connection",
                "Your edits are kept; save again once the server is reachable"
            ]
        )


class NotFoundError(RemoteAPIError):
    """The document being edited no longer exists server-side."""

    def __init__(self, doc_type: str, item_id: Optional[str] = None):
        self.doc_type = doc_type
        self.item_id = item_id
        target = f"{doc_type}/{item_id}" if item_id else doc_type
        super().__init__(
            f"Content '{target}' was not found",
            status_code=404,
            context={'doc_type': doc_type, 'item_id': item_id},
            recovery_suggestions=["Return to the list and reopen the document"]
        )


class RemoteValidationError(RemoteAPIError):
    """The server rejected the payload (HTTP 422) with its own field errors."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        self.field_errors = field_errors or {}
        super().__init__(
            message,
            status_code=422,
            context={'field_errors': self.field_errors},
            recovery_suggestions=["Correct the fields reported by the server and save again"]
        )


class SubmitInProgressError(ContentEditorError):
    """A save for the same document instance is already in flight."""

    def __init__(self, doc_type: str):
        self.doc_type = doc_type
        super().__init__(
            f"A save for '{doc_type}' is already in progress",
            context={'doc_type': doc_type},
            recovery_suggestions=["Wait for the current save to finish"]
        )
