from __future__ import annotations

from typing import Optional, Sequence

from mod_inliner.core.errors import ParseFailedError
from mod_inliner.core.model import Attribute, Item, ModuleDeclaration, SourceFile, Verbatim
from mod_inliner.core.syntax.tokens import Token, tokenize


# Items introduced by these keywords always end with `;`, even when a brace
# group (struct literal, block expression) appears in their initializer.
SEMICOLON_ITEMS: set[str] = {"const", "static", "type", "use", "let"}

_FN_QUALIFIERS: set[str] = {"fn", "unsafe", "async", "extern"}


def parse_file(text: str, *, file: Optional[str] = None) -> SourceFile:
    """Parse source text into a SourceFile.

    Only the item level is understood: attributes, module declarations and the
    boundaries of every other item. Everything else is kept as opaque tokens.
    """

    try:
        tokens = tokenize(_strip_shebang(text))
        attrs, items = parse_items(tokens)
    except ParseFailedError as e:
        raise e.with_context(file=file) from None
    return SourceFile(attrs=attrs, items=items)


def parse_items(tokens: Sequence[Token]) -> tuple[list[Attribute], list[Item]]:
    """Split a token sequence (file or module block body) into inner attributes and items."""

    n = len(tokens)
    i = 0

    inner_attrs: list[Attribute] = []
    while _is_inner_attr(tokens, i):
        inner_attrs.append(_attribute(tokens[i + 2], inner=True))
        i += 3

    items: list[Item] = []
    while i < n:
        attrs: list[Attribute] = []
        while i + 1 < n and tokens[i].is_punct("#") and tokens[i + 1].is_group("["):
            attrs.append(_attribute(tokens[i + 1], inner=False))
            i += 2

        if i < n and _is_inner_attr(tokens, i):
            raise _error("inner attribute is not permitted here", tokens[i])
        if i >= n:
            raise _error("expected item after attributes", tokens[-1])

        end = _item_end(tokens, i)
        items.append(_make_item(attrs, tokens[i:end]))
        i = end

    return inner_attrs, items


def _is_inner_attr(tokens: Sequence[Token], i: int) -> bool:
    return (
        i + 2 < len(tokens)
        and tokens[i].is_punct("#")
        and tokens[i + 1].is_punct("!")
        and tokens[i + 2].is_group("[")
    )


def _attribute(bracket: Token, *, inner: bool) -> Attribute:
    children = bracket.children
    k = 0
    if k < len(children) and children[k].is_punct("::"):
        k += 1

    parts: list[str] = []
    while k < len(children) and children[k].is_ident():
        parts.append(children[k].text)
        k += 1
        if k < len(children) and children[k].is_punct("::"):
            k += 1
            continue
        break

    if not parts:
        raise _error("expected attribute name", bracket)
    return Attribute(path="::".join(parts), tokens=tuple(children[k:]), inner=inner)


def _skip_visibility(tokens: Sequence[Token], i: int) -> int:
    if i < len(tokens) and tokens[i].is_ident("pub"):
        i += 1
        if i < len(tokens) and tokens[i].is_group("("):
            i += 1
    elif i < len(tokens) and tokens[i].is_ident("crate") and not (
        i + 1 < len(tokens) and tokens[i + 1].is_punct("::")
    ):
        i += 1
    return i


def _item_end(tokens: Sequence[Token], start: int) -> int:
    k = _skip_visibility(tokens, start)
    semicolon_only = False
    if k < len(tokens) and tokens[k].is_ident() and tokens[k].text in SEMICOLON_ITEMS:
        nxt = tokens[k + 1] if k + 1 < len(tokens) else None
        semicolon_only = not (nxt is not None and nxt.is_ident() and nxt.text in _FN_QUALIFIERS)

    for j in range(start, len(tokens)):
        t = tokens[j]
        if t.is_punct(";"):
            return j + 1
        if t.is_group("{") and not semicolon_only:
            return j + 1
    raise _error("expected `;` or `{ ... }` to end item", tokens[start])


def _make_item(attrs: list[Attribute], tokens: Sequence[Token]) -> Item:
    k = _skip_visibility(tokens, 0)
    if k < len(tokens) and tokens[k].is_ident("unsafe"):
        k += 1

    if k + 2 < len(tokens) and tokens[k].is_ident("mod") and tokens[k + 1].is_ident():
        name = tokens[k + 1].text
        rest = tokens[k + 2 :]
        qualifiers = tuple(tokens[:k])
        if len(rest) == 1 and rest[0].is_punct(";"):
            return ModuleDeclaration(name=name, attrs=attrs, content=None, visibility=qualifiers)
        if len(rest) == 1 and rest[0].is_group("{"):
            inner_attrs, inner_items = parse_items(rest[0].children)
            return ModuleDeclaration(
                name=name,
                attrs=attrs + inner_attrs,
                content=inner_items,
                visibility=qualifiers,
            )

    return Verbatim(attrs=attrs, tokens=tuple(tokens))


def _strip_shebang(text: str) -> str:
    if not text.startswith("#!"):
        return text
    if text[2:].lstrip().startswith("["):
        return text
    newline = text.find("\n")
    return "" if newline < 0 else text[newline:]


def _error(message: str, at: Token) -> ParseFailedError:
    return ParseFailedError(code="E_PARSE", message=f"{message} at line {at.line}, column {at.col}")
