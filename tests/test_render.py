import json

import yaml

from mod_inliner.core.io.dump_tree import dump_tree_json, dump_tree_yaml, tree_to_dict
from mod_inliner.core.syntax.parse_source import parse_file
from mod_inliner.core.syntax.render import render_file


def test_render_is_stable_under_reparse():
    src = (
        "#![allow(unused)]\n"
        '#[cfg_attr(feature = "x", path = "x.rs")]\n'
        "pub(crate) mod a;\n"
        "mod b {\n"
        "    #![doc = \"b\"]\n"
        "    fn f<'a>(x: &'a str) -> Option<&'a str> { Some(x) }\n"
        "    mod c {}\n"
        "}\n"
    )
    once = render_file(parse_file(src))
    twice = render_file(parse_file(once))
    assert once == twice
    assert parse_file(once) == parse_file(src)


def test_render_module_shapes():
    out = render_file(parse_file("pub mod a;\nmod b {}\nmod c { struct S; }\n"))
    assert out == "pub mod a;\nmod b {}\nmod c {\n    struct S;\n}\n"


def test_render_attributes():
    out = render_file(parse_file('#[cfg(not(any(unix, feature = "y")))]\n#[path = "p.rs"]\nmod a;\n'))
    assert out.splitlines()[:2] == ['#[cfg(not(any(unix, feature = "y")))]', '#[path = "p.rs"]']


def test_tree_dumps():
    tree = parse_file("#[cfg(unix)]\nmod a;\nmod b { struct S; }\n")
    d = tree_to_dict(tree)
    assert d["items"][0] == {
        "kind": "mod",
        "name": "a",
        "attrs": ["#[cfg(unix)]"],
        "visibility": None,
        "external": True,
    }
    assert d["items"][1]["items"] == [{"kind": "item", "attrs": [], "text": "struct S;"}]
    assert yaml.safe_load(dump_tree_yaml(tree)) == d
    assert json.loads(dump_tree_json(tree)) == d


def test_adjacent_punctuation_is_not_glued():
    tree = parse_file("type T = fn(x: ::std::io::Error);\nconst A: bool = & &x;\n")
    out = render_file(tree)
    assert ": ::std" in out
    assert "& &x" in out
    assert parse_file(out) == tree
