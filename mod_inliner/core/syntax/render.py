"""Token printer for expanded trees.

This is not a formatter: output is meant to be token-equivalent to the input,
one item per line, with inline module bodies indented.
"""
from __future__ import annotations

from typing import Iterable, Sequence

from mod_inliner.core.model import Attribute, Item, ModuleDeclaration, SourceFile
from mod_inliner.core.syntax.tokens import OPEN_TO_CLOSE, Token, ident, punct, punct_glues

INDENT = "    "

_TIGHT_BEFORE: set[str] = {",", ";", ".", ":", "::", "?"}
_TIGHT_AFTER: set[str] = {".", "::", "#", "$", "!", "&"}
_SPACED_KEYWORDS: set[str] = {
    "as", "dyn", "else", "for", "if", "impl", "in", "let", "match", "move", "mut", "return", "where", "while",
}


def render_file(tree: SourceFile) -> str:
    lines: list[str] = [render_attribute(a) for a in tree.attrs]
    _render_items(tree.items, lines, 0)
    return "\n".join(lines) + "\n"


def render_items(items: Sequence[Item]) -> str:
    lines: list[str] = []
    _render_items(items, lines, 0)
    return "\n".join(lines)


def render_attribute(attr: Attribute) -> str:
    head = "#!" if attr.inner else "#"
    return f"{head}[{render_tokens(path_tokens(attr.path) + attr.tokens)}]"


def path_tokens(path: str) -> tuple[Token, ...]:
    out: list[Token] = []
    for i, part in enumerate(path.split("::")):
        if i:
            out.append(punct("::"))
        out.append(ident(part))
    return tuple(out)


def render_tokens(tokens: Iterable[Token]) -> str:
    parts: list[str] = []
    prev: Token | None = None
    for t in tokens:
        if prev is not None and _needs_space(prev, t):
            parts.append(" ")
        parts.append(_render_token(t))
        prev = t
    return "".join(parts)


def _render_token(t: Token) -> str:
    if t.kind != "group":
        return t.text
    inner = render_tokens(t.children)
    close = OPEN_TO_CLOSE[t.text]
    if t.text == "{":
        return "{ " + inner + " }" if inner else "{}"
    return t.text + inner + close


def _needs_space(prev: Token, cur: Token) -> bool:
    if prev.kind == "punct" and cur.kind == "punct" and punct_glues(prev.text, cur.text):
        return True
    if cur.kind == "punct" and cur.text in _TIGHT_BEFORE:
        return False
    if prev.kind == "punct" and prev.text in _TIGHT_AFTER:
        return False
    if cur.is_group("(") or cur.is_group("["):
        if prev.kind == "ident":
            return prev.text in _SPACED_KEYWORDS
        return prev.kind != "punct"
    return True


def _render_items(items: Sequence[Item], lines: list[str], depth: int) -> None:
    pad = INDENT * depth
    for item in items:
        outer = [a for a in item.attrs if not a.inner]
        inner = [a for a in item.attrs if a.inner]
        for a in outer:
            lines.append(pad + render_attribute(a))

        if not isinstance(item, ModuleDeclaration):
            lines.append(pad + render_tokens(item.tokens))
            continue

        head = render_tokens(item.visibility + (ident("mod"), ident(item.name)))
        if item.content is None:
            lines.append(f"{pad}{head};")
        elif not item.content and not inner:
            lines.append(f"{pad}{head} {{}}")
        else:
            lines.append(f"{pad}{head} {{")
            for a in inner:
                lines.append(pad + INDENT + render_attribute(a))
            _render_items(item.content, lines, depth + 1)
            lines.append(f"{pad}}}")
