"""Mutable clause accumulator for one builder."""

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass
class Condition:
    """One WHERE/HAVING predicate."""
    connective: str
    column: str
    operator: str
    value: Any


@dataclass
class Join:
    type: str
    table: str
    alias: Optional[str]
    left: str
    operator: str
    right: str


@dataclass
class OrderTerm:
    column: str
    direction: str


@dataclass
class QueryState:
    """Clauses collected by builder calls until the next terminal call.

    Builder methods only append or set; every terminal call resets the
    state, whether it succeeded or not.
    """
    where: List[Condition] = field(default_factory=list)
    having: List[Condition] = field(default_factory=list)
    joins: List[Join] = field(default_factory=list)
    group_by: List[str] = field(default_factory=list)
    order_by: List[OrderTerm] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None

    def reset(self) -> None:
        self.where = []
        self.having = []
        self.joins = []
        self.group_by = []
        self.order_by = []
        self.limit = None
        self.offset = None

    def is_empty(self) -> bool:
        return self == QueryState()
