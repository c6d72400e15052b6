from __future__ import annotations
"""Plain structured inputs and results of the workflow core."""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Optional, Union


class EntityKind(str, Enum):
    TICKET = 'TICKET'
    WORK_ORDER = 'WORK_ORDER'


class OwnerType(str, Enum):
    INTERNAL = 'INTERNAL'
    VENDOR = 'VENDOR'


@dataclass(frozen=True)
class TransitionRequest:
    entity_kind: Union[EntityKind, str]
    current_status: str
    action: str
    actor_id: Union[int, str, None]
    actor_role: Optional[str]
    current_owner_id: Union[int, str, None] = None
    context: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class TransitionResult:
    allowed: bool
    new_status: Optional[str] = None
    new_owner_type: Optional[str] = None
    new_owner_role: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def deny(cls, error_code: str, error: str) -> 'TransitionResult':
        return cls(allowed=False, error=error, error_code=error_code)

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def passed(cls) -> 'ValidationResult':
        return cls(ok=True)

    @classmethod
    def failed(cls, error_code: str, error: str) -> 'ValidationResult':
        return cls(ok=False, error=error, error_code=error_code)


__all__ = ['EntityKind', 'OwnerType', 'TransitionRequest', 'TransitionResult', 'ValidationResult']
