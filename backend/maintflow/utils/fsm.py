from __future__ import annotations
"""Declarative transition tables for lifecycle models (Ticket, WorkOrder).

Each table is an ordered, immutable collection of ``TransitionRule`` records keyed
by ``(from_status, action)``. Usage:
    from maintflow.utils.fsm import TransitionRule, TransitionTable
    TABLE = TransitionTable('ticket', [
        TransitionRule('DRAFT', 'SUBMIT', 'SUBMITTED', frozenset({'SM'})),
    ])
    rule = TABLE.find('DRAFT', 'SUBMIT')

Duplicate keys raise ``ValueError`` when the table is built.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class TransitionRule:
    from_status: str
    action: str
    to_status: str
    allowed_roles: FrozenSet[str]
    requires_ownership: bool = True
    new_owner_role: Optional[str] = None
    # validator(context) -> None when it passes, else (error, error_code)
    validator: Optional[Callable[[Dict[str, Any]], Optional[Tuple[str, str]]]] = field(default=None, compare=False)
    description: str = field(default='', compare=False)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.from_status, self.action)

    @property
    def is_self_transition(self) -> bool:
        return self.from_status == self.to_status


class TransitionTable:
    def __init__(self, name: str, rules: Iterable[TransitionRule]):
        self.name = name
        self._rules: Tuple[TransitionRule, ...] = tuple(rules)
        self._index: Dict[Tuple[str, str], TransitionRule] = {}
        for rule in self._rules:
            if rule.key in self._index:
                raise ValueError(f"Duplicate {name} transition {rule.from_status} --{rule.action}-->")
            self._index[rule.key] = rule

    def find(self, from_status: str, action: str) -> Optional[TransitionRule]:
        return self._index.get((from_status, action))

    def for_status(self, from_status: str) -> List[TransitionRule]:
        return [r for r in self._rules if r.from_status == from_status]

    def statuses(self) -> List[str]:
        seen: List[str] = []
        for r in self._rules:
            for s in (r.from_status, r.to_status):
                if s not in seen:
                    seen.append(s)
        return seen

    def actions(self) -> List[str]:
        return sorted({r.action for r in self._rules})

    def graph(self) -> Dict[str, List[str]]:
        """Return ``from_status -> [to_status, ...]`` (useful for docs and tests)."""
        out: Dict[str, List[str]] = {}
        for r in self._rules:
            targets = out.setdefault(r.from_status, [])
            if r.to_status not in targets:
                targets.append(r.to_status)
        return out

    def __iter__(self) -> Iterator[TransitionRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, key) -> bool:
        return key in self._index


__all__ = ['TransitionRule', 'TransitionTable']
