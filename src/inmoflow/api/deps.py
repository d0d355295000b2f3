# src/inmoflow/api/deps.py
from __future__ import annotations

from typing import Any, Iterable

from fastapi import Request

from inmoflow.adapters.memory_repo import Repositories
from inmoflow.domain.validation import CamelModel


def get_repos(request: Request) -> Repositories:
    return request.app.state.repos


def dump(value: CamelModel | Iterable[CamelModel]) -> Any:
    if isinstance(value, CamelModel):
        return value.to_json_dict()
    return [v.to_json_dict() for v in value]
