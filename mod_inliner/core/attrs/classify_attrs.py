from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from mod_inliner.core.errors import (
    MalformedConditionalOverrideError,
    MalformedGuardError,
    MalformedLocationOverrideError,
    ParseFailedError,
)
from mod_inliner.core.model import Attribute, Guard, LocationOverride, ModulePath, Predicate
from mod_inliner.core.syntax.tokens import Token, string_literal_value


class AttrKind(Enum):
    PATH = "path"
    CFG = "cfg"
    CFG_ATTR = "cfg_attr"
    OTHER = "other"

    @classmethod
    def of(cls, attr: Attribute) -> AttrKind:
        for kind in (cls.PATH, cls.CFG, cls.CFG_ATTR):
            if attr.path == kind.value:
                return kind
        return cls.OTHER


@dataclass(frozen=True)
class ClassifiedAttrs:
    guards: list[Guard] = field(default_factory=list)
    overrides: list[LocationOverride] = field(default_factory=list)
    passthrough: list[Attribute] = field(default_factory=list)


def classify_attributes(attrs: Sequence[Attribute], *, module: ModulePath = ()) -> ClassifiedAttrs:
    """Split a module declaration's attributes into cfg guards, path overrides and the rest.

    - `#[cfg(pred)]` -> guard `pred`
    - `#[path = "x.rs"]` -> unconditional override
    - `#[cfg_attr(pred, path = "x.rs")]` -> override guarded by `pred`
    - anything else (including `cfg_attr` that does not set `path`) is kept as-is, in order.
    """

    out = ClassifiedAttrs()
    for attr in attrs:
        kind = AttrKind.of(attr)
        if kind is AttrKind.CFG:
            out.guards.append(_parse_cfg(attr.tokens, module))
        elif kind is AttrKind.PATH:
            out.overrides.append(LocationOverride(path=extract_path(attr.tokens, module)))
        elif kind is AttrKind.CFG_ATTR:
            override = _parse_cfg_attr(attr.tokens, module)
            if override is None:
                out.passthrough.append(attr)
            else:
                out.overrides.append(override)
        else:
            out.passthrough.append(attr)
    return out


def extract_path(tokens: Sequence[Token], module: ModulePath = ()) -> str:
    """Parse the `= "some/path.rs"` payload of a path attribute."""

    if len(tokens) != 2:
        raise MalformedLocationOverrideError(
            code="E_PATH_ATTR_NOT_TWO_TOKENS",
            message="#[path] attribute has not exactly two tokens: equal sign and a path",
            module=module,
        )
    if not tokens[0].is_punct("="):
        raise MalformedLocationOverrideError(
            code="E_PATH_ATTR_NO_EQUAL_SIGN",
            message="#[path] attribute's first token is not an equal sign punctuation",
            module=module,
        )
    try:
        value = string_literal_value(tokens[1])
    except ParseFailedError as e:
        raise MalformedLocationOverrideError(
            code="E_PATH_ATTR_BAD_ESCAPE",
            message=f"#[path] attribute's string literal is invalid: {e.message}",
            module=module,
        ) from e
    if value is None:
        raise MalformedLocationOverrideError(
            code="E_PATH_ATTR_NOT_STRING",
            message="#[path] attribute's second token is not a string literal",
            module=module,
        )
    return value


def _parse_cfg(tokens: Sequence[Token], module: ModulePath) -> Guard:
    if len(tokens) != 1 or not tokens[0].is_group("(") or not tokens[0].children:
        raise MalformedGuardError(
            code="E_MALFORMED_CFG",
            message="`#[cfg` is not followed by a sole round parentheses group",
            module=module,
        )
    return Predicate(tokens=tokens[0].children)


def _parse_cfg_attr(tokens: Sequence[Token], module: ModulePath) -> LocationOverride | None:
    if len(tokens) != 1 or not tokens[0].is_group("("):
        raise MalformedConditionalOverrideError(
            code="E_CFG_ATTR_NOT_ROUND_GROUP",
            message="#[cfg_attr] attribute is not followed by a single round brackets group",
            module=module,
        )

    inner = tokens[0].children
    not_two = MalformedConditionalOverrideError(
        code="E_CFG_ATTR_NOT_TWO_PARAMS",
        message="#[cfg_attr] attribute does not have exactly two parameters",
        module=module,
    )
    if len(inner) < 3:
        raise not_two

    commas = [i for i, t in enumerate(inner) if t.is_punct(",")]
    if len(commas) != 1:
        raise not_two
    predicate, attribute = inner[: commas[0]], inner[commas[0] + 1 :]

    if not attribute or not attribute[0].is_ident("path"):
        return None
    return LocationOverride(path=extract_path(attribute[1:], module), guard=Predicate(tokens=tuple(predicate)))
