from __future__ import annotations


class TrackerError(Exception):
    """Base class for errors that map onto a client-facing status code."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TrackerError):
    status_code = 400


class NotFoundError(TrackerError):
    status_code = 404


class ConflictError(TrackerError):
    status_code = 400


class AlreadyLinkedError(ConflictError):
    pass


def missing_fields_message(names: list[str]) -> str:
    if len(names) == 1:
        return f"Missing required field: {names[0]}"
    if len(names) == 2:
        return f"Missing required fields: {names[0]} and {names[1]}"
    return f"Missing required fields: {', '.join(names[:-1])}, and {names[-1]}"


def require_fields(values: dict, fields: dict[str, str]) -> None:
    """Raise when any of ``fields`` (attribute name -> wire name) is empty."""
    missing = [wire for attr, wire in fields.items() if not values.get(attr)]
    if missing:
        raise ValidationError(missing_fields_message(list(fields.values())))
