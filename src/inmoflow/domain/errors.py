# src/inmoflow/domain/errors.py
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from inmoflow.domain.validation import ValidationResult


class InmoflowError(Exception):
    """Base class for errors raised by the back-office services."""


class NotFoundError(InmoflowError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} con ID {entity_id} no encontrado")
        self.entity = entity
        self.entity_id = entity_id


class InvalidInputError(InmoflowError):
    def __init__(self, result: "ValidationResult", message: str = "Errores de validación") -> None:
        super().__init__(message)
        self.result = result

    @property
    def errors(self) -> dict[str, str]:
        return self.result.errors


class InvalidTransitionError(InmoflowError):
    """A state change that the record's lifecycle does not allow."""
