from __future__ import annotations

from typing import Sequence

from mod_inliner.core.model import Attribute, Guard, ModuleDeclaration, SourceFile, guard_tokens
from mod_inliner.core.syntax.tokens import group


def splice_module(decl: ModuleDeclaration, attrs: Sequence[Attribute], resolved: SourceFile) -> ModuleDeclaration:
    """Turn `mod name;` into `mod name { ... }` holding the resolved file.

    The file's own leading (inner) attributes follow the declaration's
    attributes. Items are taken as-is; no reordering, no deduplication.
    """
    return ModuleDeclaration(
        name=decl.name,
        attrs=list(attrs) + list(resolved.attrs),
        content=list(resolved.items),
        visibility=decl.visibility,
    )


def cfg_attribute(guard: Guard) -> Attribute:
    return Attribute(path="cfg", tokens=(group("(", guard_tokens(guard)),))
