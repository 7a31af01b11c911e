from __future__ import annotations

import json
from typing import Any

import yaml

from mod_inliner.core.model import Item, ModuleDeclaration, SourceFile
from mod_inliner.core.syntax.render import render_attribute, render_tokens


def tree_to_dict(tree: SourceFile) -> dict[str, Any]:
    """Structural view of a tree: modules as nested mappings, other items as rendered text."""
    return {
        "attrs": [render_attribute(a) for a in tree.attrs],
        "items": [_item_to_dict(i) for i in tree.items],
    }


def dump_tree_yaml(tree: SourceFile) -> str:
    return yaml.safe_dump(tree_to_dict(tree), sort_keys=False, default_flow_style=False, allow_unicode=True)


def dump_tree_json(tree: SourceFile) -> str:
    return json.dumps(tree_to_dict(tree), indent=2, ensure_ascii=False)


def _item_to_dict(item: Item) -> dict[str, Any]:
    attrs = [render_attribute(a) for a in item.attrs]
    if not isinstance(item, ModuleDeclaration):
        return {"kind": "item", "attrs": attrs, "text": render_tokens(item.tokens)}

    out: dict[str, Any] = {
        "kind": "mod",
        "name": item.name,
        "attrs": attrs,
        "visibility": render_tokens(item.visibility) or None,
        "external": item.is_external,
    }
    if item.content is not None:
        out["items"] = [_item_to_dict(i) for i in item.content]
    return out
