"""Tokenizer producing token trees for Rust-like source text.

The tokenizer is deliberately shallow: it knows enough about the lexical
grammar (comments, literals, lifetimes, brackets) to split a file into
balanced token trees. Items are recognized on top of these trees by
``parse_source``; expression and type syntax is never interpreted.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

from mod_inliner.core.errors import ParseFailedError


TokenKind = Literal["ident", "punct", "literal", "lifetime", "group"]

OPEN_TO_CLOSE: dict[str, str] = {"(": ")", "[": "]", "{": "}"}


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    children: tuple[Token, ...] = ()

    line: int = field(default=0, compare=False, repr=False)
    col: int = field(default=0, compare=False, repr=False)

    def is_punct(self, text: str) -> bool:
        return self.kind == "punct" and self.text == text

    def is_ident(self, text: str | None = None) -> bool:
        return self.kind == "ident" and (text is None or self.text == text)

    def is_group(self, delimiter: str | None = None) -> bool:
        return self.kind == "group" and (delimiter is None or self.text == delimiter)


def ident(text: str) -> Token:
    return Token("ident", text)


def punct(text: str) -> Token:
    return Token("punct", text)


def group(delimiter: str, children: list[Token] | tuple[Token, ...]) -> Token:
    return Token("group", delimiter, tuple(children))


def string_literal(value: str) -> Token:
    return Token("literal", quote_string(value))


def quote_string(value: str) -> str:
    """Quote a value as a Rust string literal."""
    out: list[str] = []
    for ch in value:
        if ch in _QUOTE_ESCAPES:
            out.append(_QUOTE_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\u{{{ord(ch):x}}}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


_QUOTE_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t", "\0": "\\0"}


# Longest operators first so that the alternation prefers them.
_OPERATORS = [
    "<<=", ">>=", "...", "..=",
    "::", "->", "=>", "==", "!=", "<=", ">=", "&&", "||", "..",
    "+=", "-=", "*=", "/=", "%=", "^=", "&=", "|=", "<<", ">>",
]

_TOKEN_SPECS: list[tuple[str, str]] = [
    ("NEWLINE", r"\n"),
    ("WS", r"[ \t\r\f\v]+"),
    ("OUTER_LINE_DOC", r"///(?!/)[^\n]*"),
    ("INNER_LINE_DOC", r"//![^\n]*"),
    ("LINE_COMMENT", r"//[^\n]*"),
    ("BLOCK_START", r"/\*"),
    ("RAW_STRING", r'b?r(?P<hashes>#*)"'),
    ("STRING", r'b?"(?:[^"\\]|\\.)*"'),
    ("CHAR", r"b?'(?:[^'\\\n]|\\(?:x[0-9a-fA-F]{2}|u\{[0-9a-fA-F_]{1,6}\}|.))'"),
    ("LIFETIME", r"'[^\W\d]\w*"),
    ("NUMBER", r"\d[\d_]*(?:\.(?![.A-Za-z_])[\d_]*)?(?:[eE][+-]?[\d_]+)?[A-Za-z0-9_]*"),
    ("RAW_IDENT", r"r#[^\W\d]\w*"),
    ("IDENT", r"[^\W\d]\w*"),
    ("OP", "|".join(re.escape(op) for op in _OPERATORS)),
    ("OPEN", r"[(\[{]"),
    ("CLOSE", r"[)\]}]"),
    ("PUNCT", r"[#!$%&*+,\-./:;<=>?@^|~]"),
    ("MISMATCH", r"."),
]

_MASTER = re.compile("|".join(f"(?P<{k}>{p})" for k, p in _TOKEN_SPECS), re.DOTALL)


def tokenize(text: str) -> list[Token]:
    """Tokenize source text into a list of top-level token trees."""

    stack: list[tuple[Token, list[Token]]] = []
    current: list[Token] = []
    line = 1
    line_start = 0
    pos = 0
    n = len(text)

    def fail(message: str, at: int) -> ParseFailedError:
        return ParseFailedError(
            code="E_PARSE",
            message=f"{message} at line {line}, column {at - line_start + 1}",
        )

    while pos < n:
        m = _MASTER.match(text, pos)
        kind = m.lastgroup
        value = m.group()
        col = pos - line_start + 1

        if kind == "NEWLINE":
            line += 1
            line_start = m.end()
            pos = m.end()
            continue

        if kind in ("WS", "LINE_COMMENT"):
            pos = m.end()
            continue

        if kind in ("OUTER_LINE_DOC", "INNER_LINE_DOC"):
            current.extend(_doc_attribute(value[3:], inner=kind == "INNER_LINE_DOC", line=line, col=col))
            pos = m.end()
            continue

        if kind == "BLOCK_START":
            end = _skip_block_comment(text, pos)
            if end < 0:
                raise fail("unterminated block comment", pos)
            body = text[pos:end]
            if body.startswith("/**") and not body.startswith("/***") and body != "/**/":
                current.extend(_doc_attribute(body[3:-2], inner=False, line=line, col=col))
            elif body.startswith("/*!"):
                current.extend(_doc_attribute(body[3:-2], inner=True, line=line, col=col))
            line += body.count("\n")
            if "\n" in body:
                line_start = pos + body.rfind("\n") + 1
            pos = end
            continue

        if kind == "RAW_STRING":
            closing = '"' + m.group("hashes")
            end = text.find(closing, m.end())
            if end < 0:
                raise fail("unterminated raw string", pos)
            end += len(closing)
            value = text[pos:end]
            current.append(Token("literal", value, line=line, col=col))
            line += value.count("\n")
            if "\n" in value:
                line_start = pos + value.rfind("\n") + 1
            pos = end
            continue

        if kind == "STRING":
            current.append(Token("literal", value, line=line, col=col))
            line += value.count("\n")
            if "\n" in value:
                line_start = pos + value.rfind("\n") + 1
            pos = m.end()
            continue

        if kind in ("CHAR", "NUMBER"):
            current.append(Token("literal", value, line=line, col=col))
        elif kind == "LIFETIME":
            current.append(Token("lifetime", value, line=line, col=col))
        elif kind in ("IDENT", "RAW_IDENT"):
            current.append(Token("ident", value, line=line, col=col))
        elif kind in ("OP", "PUNCT"):
            current.append(Token("punct", value, line=line, col=col))
        elif kind == "OPEN":
            stack.append((Token("group", value, line=line, col=col), current))
            current = []
        elif kind == "CLOSE":
            if not stack:
                raise fail(f"unexpected closing delimiter {value!r}", pos)
            opener, parent = stack.pop()
            if OPEN_TO_CLOSE[opener.text] != value:
                raise fail(
                    f"mismatched closing delimiter {value!r} for {opener.text!r} opened at line {opener.line}",
                    pos,
                )
            parent.append(Token("group", opener.text, tuple(current), line=opener.line, col=opener.col))
            current = parent
        else:
            raise fail(f"unexpected character {value!r}", pos)

        pos = m.end()

    if stack:
        opener, _ = stack[-1]
        raise ParseFailedError(
            code="E_PARSE",
            message=f"unclosed delimiter {opener.text!r} opened at line {opener.line}, column {opener.col}",
        )
    return current


def string_literal_value(token: Token) -> str | None:
    """Return the value of a (non-byte) string literal token, or None for any other token."""

    if token.kind != "literal":
        return None
    text = token.text
    if text.startswith("r"):
        m = re.fullmatch(r'r(#*)"(.*)"\1', text, re.DOTALL)
        return m.group(2) if m else None
    if not (text.startswith('"') and text.endswith('"') and len(text) >= 2):
        return None
    try:
        return _unescape(text[1:-1])
    except ValueError as e:
        raise ParseFailedError(
            code="E_PARSE",
            message=f"invalid escape in string literal {text} at line {token.line}, column {token.col}: {e}",
        ) from e


_SIMPLE_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "\\": "\\", "0": "\0", "'": "'", '"': '"'}


def _unescape(body: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        nxt = body[i + 1] if i + 1 < len(body) else ""
        if nxt in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[nxt])
            i += 2
        elif nxt == "x":
            digits = body[i + 2 : i + 4]
            if len(digits) != 2:
                raise ValueError(f"truncated \\x escape: \\x{digits}")
            out.append(chr(int(digits, 16)))
            i += 4
        elif nxt == "u":
            close = body.find("}", i)
            if body[i + 2 : i + 3] != "{" or close < 0:
                raise ValueError("unicode escape must be \\u{...}")
            out.append(chr(int(body[i + 3 : close].replace("_", ""), 16)))
            i = close + 1
        elif nxt == "\n":
            # line continuation: skip the newline and leading whitespace
            i += 2
            while i < len(body) and body[i] in " \t\r\n":
                i += 1
        else:
            out.append(nxt)
            i += 2
    return "".join(out)


def _skip_block_comment(text: str, pos: int) -> int:
    """Return the index just past the block comment starting at pos (nested), or -1."""
    depth = 0
    i = pos
    n = len(text)
    while i < n:
        if text.startswith("/*", i):
            depth += 1
            i += 2
        elif text.startswith("*/", i):
            depth -= 1
            i += 2
            if depth == 0:
                return i
        else:
            i += 1
    return -1


def _doc_attribute(body: str, *, inner: bool, line: int, col: int) -> list[Token]:
    out = [Token("punct", "#", line=line, col=col)]
    if inner:
        out.append(Token("punct", "!", line=line, col=col))
    out.append(
        Token(
            "group",
            "[",
            (
                Token("ident", "doc", line=line, col=col),
                Token("punct", "=", line=line, col=col),
                Token("literal", quote_string(body), line=line, col=col),
            ),
            line=line,
            col=col,
        )
    )
    return out


def punct_glues(left: str, right: str) -> bool:
    """True when printing two punctuation tokens without a space would lex differently."""
    m = _MASTER.match(left + right)
    return m is None or m.end() != len(left)
