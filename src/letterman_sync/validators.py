"""
Input validation for remote locations and post fields.

Validators return ``(is_valid, error_message)`` tuples; ``require_*``
helpers turn a failed check into ``UserError`` for library callers.
"""

import re

from .errors import UserError

# GitHub owner and repository name characters
_REPO_PART = re.compile(r"^[A-Za-z0-9._-]+$")


def format_validation_error(field_name: str, reason: str) -> str:
    """Build a consistent validation message, e.g. "Path cannot be empty"."""
    return f"{field_name} {reason}"


def validate_repository(repository: str) -> tuple[bool, str]:
    """
    Validate an ``owner/name`` repository slug.

    Validation rules:
        - Cannot be empty
        - Exactly one '/' separating non-empty owner and name
        - Owner and name use letters, digits, '.', '-', '_'
    """
    if not repository or not repository.strip():
        return (
            False,
            format_validation_error("Repository", "cannot be empty"),
        )

    parts = repository.split("/")
    if len(parts) != 2 or not all(parts):
        return (
            False,
            format_validation_error(
                "Repository", f"'{repository}' must have the form owner/name"
            ),
        )

    for part in parts:
        if part in (".", "..") or not _REPO_PART.match(part):
            return (
                False,
                format_validation_error(
                    "Repository",
                    f"'{repository}' contains invalid characters",
                ),
            )

    return (True, "")


def validate_content_path(path: str) -> tuple[bool, str]:
    """
    Validate a file path inside a repository.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot start or end with '/'
        - Cannot contain '..' segments or empty segments
    """
    if not path or not path.strip():
        return (False, format_validation_error("Path", "cannot be empty"))

    if path.startswith("/") or path.endswith("/"):
        return (
            False,
            format_validation_error(
                "Path", "cannot start or end with '/'"
            ),
        )

    segments = path.split("/")
    if any(segment in ("", ".", "..") for segment in segments):
        return (
            False,
            format_validation_error(
                "Path", "cannot contain empty, '.' or '..' segments"
            ),
        )

    return (True, "")


def validate_title(title: str) -> tuple[bool, str]:
    """Titles must contain at least one non-whitespace character."""
    if not title or not title.strip():
        return (False, format_validation_error("Title", "cannot be empty"))
    return (True, "")


def require_location(repository: str, path: str) -> None:
    """Raise ``UserError`` unless both repository and path are valid."""
    for ok, message in (
        validate_repository(repository),
        validate_content_path(path),
    ):
        if not ok:
            raise UserError(message)
