# src/inmoflow/domain/validation.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError


def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p[:1].upper() + p[1:] for p in rest)


class CamelModel(BaseModel):
    """
    Base for records that travel as camelCase JSON (the front-end contract)
    but are handled as snake_case attributes in Python.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


@dataclass
class ValidationResult:
    """
    Outcome of validating one record.

    `errors` maps a dotted field path (``listPrice``, ``constraints.minOwner``,
    ``steps.2.at``) to a single human-readable message. Checks are collected,
    never short-circuited, so a form can show every violation at once.
    Warnings never make a record invalid.
    """
    errors: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add(self, path: str, message: str) -> None:
        # first message per field wins
        self.errors.setdefault(path, message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def merge(self, other: "ValidationResult", prefix: str = "") -> "ValidationResult":
        for path, msg in other.errors.items():
            self.add(f"{prefix}.{path}" if prefix else path, msg)
        self.warnings.extend(other.warnings)
        return self

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            out: dict[str, Any] = {"ok": True}
        else:
            out = {"ok": False, "errors": dict(self.errors)}
        if self.warnings:
            out["warnings"] = list(self.warnings)
        return out

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def failure(cls, errors: dict[str, str]) -> "ValidationResult":
        return cls(errors=dict(errors))


def error_path(loc: Iterable[Any]) -> str:
    return ".".join(str(p) for p in loc) or "__root__"


def from_pydantic(err: ValidationError) -> ValidationResult:
    result = ValidationResult()
    for e in err.errors(include_url=False):
        msg = str(e.get("msg", "Valor inválido"))
        # strip pydantic's "Value error, " prefix on custom validator messages
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        result.add(error_path(e.get("loc", ())), msg)
    return result


M = TypeVar("M", bound=BaseModel)


def parse_model(model_cls: type[M], data: Any) -> tuple[M | None, ValidationResult]:
    """
    Parse `data` into `model_cls` without raising.

    Returns (model, ok-result) on success and (None, field errors) when the
    shape or a field-level constraint is wrong.
    """
    if isinstance(data, model_cls):
        return data, ValidationResult.success()
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    if not isinstance(data, dict):
        return None, ValidationResult.failure({"__root__": "Se esperaba un objeto"})
    try:
        return model_cls.model_validate(data), ValidationResult.success()
    except ValidationError as e:
        return None, from_pydantic(e)
