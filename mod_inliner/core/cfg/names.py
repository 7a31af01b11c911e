from __future__ import annotations

import re
from typing import Iterable

from mod_inliner.core.model import Guard, guard_tokens
from mod_inliner.core.syntax.tokens import OPEN_TO_CLOSE, Token, string_literal_value


def cfg_cli_name(guard: Guard) -> str:
    """Name used by `--cfg`, e.g. `feature="foo"` -> `feature=foo`, `not(unix)` -> `not(unix)`."""
    return _cli_name(guard_tokens(guard))


def cfg_env_name(guard: Guard) -> str:
    """Environment variable suffix, e.g. `feature="foo-bar"` -> `FEATURE_FOO_BAR`."""
    return _env_name(guard_tokens(guard))


def _cli_name(tokens: Iterable[Token]) -> str:
    buf: list[str] = []
    for t in tokens:
        if t.kind == "group":
            buf.append(t.text + _cli_name(t.children) + OPEN_TO_CLOSE[t.text])
        elif t.kind == "literal":
            buf.append(_literal_text(t))
        else:
            buf.append(t.text)
    return "".join(buf)


def _env_name(tokens: Iterable[Token]) -> str:
    parts: list[str] = []
    for t in tokens:
        if t.kind == "group":
            piece = _env_name(t.children)
        elif t.kind == "ident":
            piece = t.text.upper()
        elif t.kind == "literal":
            value = string_literal_value(t)
            if value is not None:
                piece = value.upper().replace(" ", "_").replace("-", "_")
            else:
                piece = _literal_text(t)
        else:
            piece = ""
        if piece:
            parts.append(piece)
    return "_".join(parts)


_CHAR = re.compile(r"'(.*)'", re.DOTALL)
_INT = re.compile(r"\d[\d_]*(?:[iu](?:8|16|32|64|128|size))?")


def _literal_text(t: Token) -> str:
    value = string_literal_value(t)
    if value is not None:
        return value
    m = _CHAR.fullmatch(t.text)
    if m:
        return m.group(1)
    if _INT.fullmatch(t.text):
        return t.text
    # byte strings, byte chars and floats carry no usable name
    return ""
