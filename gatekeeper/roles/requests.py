from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union


@dataclass(frozen=True)
class AssignNamedRole:
    """Grant one operator-track role by name."""

    user_id: str
    role_name: str


@dataclass(frozen=True)
class ReconcileScore:
    """Add or remove the verification role depending on `score` vs the minimum."""

    user_id: str
    score: float


@dataclass(frozen=True)
class AssignRoles:
    """Grant several roles in order; one failure does not stop the rest."""

    user_id: str
    role_names: Tuple[str, ...]


RoleRequest = Union[AssignNamedRole, ReconcileScore, AssignRoles]
