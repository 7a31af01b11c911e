from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from mod_inliner.core.syntax.tokens import Token, group, ident, punct


ModulePath = tuple[str, ...]


@dataclass(frozen=True)
class Attribute:
    """`#[path tokens...]`, or `#![...]` when inner."""

    path: str
    tokens: tuple[Token, ...] = ()
    inner: bool = False


@dataclass
class ModuleDeclaration:
    name: str
    attrs: list[Attribute] = field(default_factory=list)
    content: Optional[list[Item]] = None  # None: `mod name;`
    visibility: tuple[Token, ...] = ()

    @property
    def is_external(self) -> bool:
        return self.content is None


@dataclass
class Verbatim:
    """Any item other than a module declaration; never interpreted."""

    attrs: list[Attribute]
    tokens: tuple[Token, ...]


Item = Union[ModuleDeclaration, Verbatim]


@dataclass
class SourceFile:
    attrs: list[Attribute] = field(default_factory=list)
    items: list[Item] = field(default_factory=list)


@dataclass(frozen=True)
class Predicate:
    """A cfg predicate exactly as written, e.g. the tokens of `feature = "x"`."""

    tokens: tuple[Token, ...]


@dataclass(frozen=True)
class Not:
    operand: Guard


@dataclass(frozen=True)
class AnyOf:
    operands: tuple[Guard, ...]


Guard = Union[Predicate, Not, AnyOf]


@dataclass(frozen=True)
class LocationOverride:
    path: str
    guard: Optional[Guard] = None


def guard_tokens(guard: Guard) -> tuple[Token, ...]:
    if isinstance(guard, Predicate):
        return guard.tokens
    if isinstance(guard, Not):
        return (ident("not"), group("(", guard_tokens(guard.operand)))
    inner: list[Token] = []
    for i, operand in enumerate(guard.operands):
        if i:
            inner.append(punct(","))
        inner.extend(guard_tokens(operand))
    return (ident("any"), group("(", inner))


def residual_guard(accepted: list[Guard]) -> Guard:
    """`not(any(...))` over every guard that already selected a variant."""
    return Not(AnyOf(tuple(accepted)))
