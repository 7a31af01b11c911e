from pathlib import PurePosixPath

import pytest

from mod_inliner.core.cfg.names import cfg_cli_name
from mod_inliner.core.errors import (
    AmbiguousConventionalLocationsError,
    FileOpenFailedError,
    GuardEvaluationFailedError,
    MalformedLocationOverrideError,
    MultipleExplicitLocationsError,
    ParseFailedError,
    ResolutionFailedError,
)
from mod_inliner.core.expand.expand_modules import (
    expand_modules_into_inline_modules,
    find_external_modules,
    iter_modules,
)
from mod_inliner.core.expand.resolver import ResolverHelper
from mod_inliner.core.model import ModuleDeclaration
from mod_inliner.core.syntax.parse_source import parse_file
from mod_inliner.core.syntax.render import render_file


def _resolver(files: dict[str, str], *, cfg=(), calls=None) -> ResolverHelper:
    enabled = set(cfg)

    def resolve(module, path: PurePosixPath):
        if calls is not None:
            calls.append(str(path))
        text = files.get(str(path))
        return None if text is None else parse_file(text, file=str(path))

    return ResolverHelper(resolve_fn=resolve, check_cfg_fn=lambda g: cfg_cli_name(g) in enabled)


def _expand(root: str, files: dict[str, str], **kw):
    tree = parse_file(root)
    expand_modules_into_inline_modules(tree, _resolver(files, **kw))
    return tree


def _module(tree, *path) -> ModuleDeclaration:
    for p, decl in iter_modules(tree.items):
        if p == path:
            return decl
    raise AssertionError(f"no module {path}")


def test_tree_without_modules_is_unchanged():
    src = "fn main() {}\nstruct S;\n"
    calls: list[str] = []
    tree = _expand(src, {}, calls=calls)
    assert tree == parse_file(src)
    assert calls == []


def test_flat_file_then_index_file_nesting():
    files = {
        "qqq.rs": "pub trait T {}\nmod www;\n",
        "qqq/www/mod.rs": "fn w() {}\nmod eee;\n",
        "qqq/www/eee.rs": "struct E;\n",
    }
    calls: list[str] = []
    tree = _expand("mod qqq;\n", files, calls=calls)

    assert find_external_modules(tree.items) == []
    assert render_file(tree) == (
        "mod qqq {\n"
        "    pub trait T {}\n"
        "    mod www {\n"
        "        fn w() {}\n"
        "        mod eee {\n"
        "            struct E;\n"
        "        }\n"
        "    }\n"
        "}\n"
    )
    assert calls[:4] == ["qqq.rs", "qqq/mod.rs", "qqq/www.rs", "qqq/www/mod.rs"]
    assert calls[4:] == ["qqq/www/eee.rs", "qqq/www/eee/mod.rs"]


def test_path_attributes_are_relative_to_the_declaring_file():
    files = {
        # a.rs is a flat file: its #[path] values resolve from its own directory
        "a.rs": '#[path = "x/b.rs"]\nmod b;\n',
        # children of an override-loaded file are looked up next to it
        "x/b.rs": "mod c;\n",
        "x/c.rs": '#[path = "../../eee.rs"]\nmod d;\n',
        "x/../../eee.rs": "struct D;\n",
    }
    calls: list[str] = []
    tree = _expand("mod a;\n", files, calls=calls)
    assert find_external_modules(tree.items) == []
    assert "x/b.rs" in calls
    assert "a/x/b.rs" not in calls
    assert _module(tree, "a", "b", "c", "d").content[0].tokens[0].text == "struct"


def test_index_file_path_attribute_joins_module_directory():
    files = {
        "qqq/mod.rs": '#[path = "inner/w.rs"]\nmod www;\n',
        "qqq/inner/w.rs": "struct W;\n",
    }
    tree = _expand("mod qqq;\n", files)
    assert not _module(tree, "qqq", "www").is_external


def test_override_disables_conventional_lookup():
    files = {"m.rs": "struct Conventional;\n", "other.rs": "struct Other;\n"}
    calls: list[str] = []
    tree = _expand('#[path = "other.rs"]\nmod m;\n', files, calls=calls)
    assert calls == ["other.rs"]
    assert "Other" in render_file(tree)


def test_unresolved_module_stays_external_with_attributes():
    src = '#[allow(x)]\npub mod gone;\nmod here;\n'
    tree = _expand(src, {"here.rs": ""})
    assert find_external_modules(tree.items) == [("gone",)]
    gone = _module(tree, "gone")
    assert [a.path for a in gone.attrs] == ["allow"]
    assert render_file(tree).startswith("#[allow(x)]\npub mod gone;\nmod here {}\n")


def test_unresolved_override_keeps_declaration_unchanged():
    src = '#[path = "nope.rs"]\nmod m;\n'
    tree = _expand(src, {"m.rs": "struct S;\n"})
    assert tree == parse_file(src)


def test_expansion_is_idempotent():
    files = {"a.rs": "mod b;\n", "a/b.rs": "struct B;\n"}
    tree = _expand("mod a;\n", files)
    once = render_file(tree)
    expand_modules_into_inline_modules(tree, _resolver(files))
    assert render_file(tree) == once


def test_inline_modules_are_walked_for_external_children():
    files = {"outer/inner.rs": "struct I;\n"}
    tree = _expand("mod outer {\n    mod inner;\n}\n", files)
    assert not _module(tree, "outer", "inner").is_external


def test_raw_identifier_module_uses_plain_file_name():
    tree = _expand("mod r#match;\n", {"match.rs": "struct M;\n"})
    assert not _module(tree, "r#match").is_external


def test_false_cfg_removes_module_without_lookup():
    calls: list[str] = []
    tree = _expand("#[cfg(windows)]\nmod w;\nstruct S;\n", {"w.rs": ""}, calls=calls)
    assert calls == []
    assert len(tree.items) == 1


def test_true_cfg_is_consumed():
    tree = _expand("#[cfg(unix)]\nmod u;\n", {"u.rs": "struct U;\n"}, cfg={"unix"})
    assert render_file(tree) == "mod u {\n    struct U;\n}\n"


def test_guarded_overrides_pick_the_true_one():
    src = (
        '#[cfg_attr(feature = "lol", path = "lol.rs")]\n'
        '#[cfg_attr(feature = "win", path = "win.rs")]\n'
        "#[cfg_attr(test, derive(Debug))]\n"
        "mod qqq;\n"
    )
    files = {"lol.rs": "struct Lol;\n", "win.rs": "struct Win;\n", "qqq.rs": "struct Plain;\n"}
    calls: list[str] = []
    tree = _expand(src, files, cfg={"feature=win"}, calls=calls)

    assert calls == ["win.rs"]
    (qqq,) = tree.items
    assert [a.path for a in qqq.attrs] == ["cfg_attr"]
    assert render_file(tree) == "#[cfg_attr(test, derive(Debug))]\nmod qqq {\n    struct Win;\n}\n"


def test_no_true_guard_falls_back_to_conventional():
    src = '#[cfg_attr(unix, path = "u.rs")]\nmod m;\n'
    tree = _expand(src, {"m.rs": "struct M;\n", "u.rs": "struct U;\n"})
    assert "struct M;" in render_file(tree)


def test_two_unconditional_overrides_conflict():
    src = '#[path = "a.rs"]\n#[path = "b.rs"]\nmod m;\n'
    with pytest.raises(MultipleExplicitLocationsError) as ei:
        _expand(src, {"a.rs": "", "b.rs": ""})
    assert ei.value.code == "E_MULTIPLE_EXPLICIT_PATHS"
    assert ei.value.module == ("m",)


def test_two_true_guarded_overrides_conflict():
    src = '#[cfg_attr(unix, path = "a.rs")]\n#[cfg_attr(test, path = "b.rs")]\nmod m;\n'
    with pytest.raises(MultipleExplicitLocationsError):
        _expand(src, {"a.rs": "", "b.rs": ""}, cfg={"unix", "test"})


def test_unconditional_override_after_accepted_guarded_one_conflicts():
    src = '#[cfg_attr(unix, path = "a.rs")]\n#[path = "b.rs"]\nmod m;\n'
    with pytest.raises(MultipleExplicitLocationsError):
        _expand(src, {"a.rs": "", "b.rs": ""}, cfg={"unix"})


def test_override_conflict_does_not_depend_on_files_existing():
    calls: list[str] = []
    with pytest.raises(MultipleExplicitLocationsError):
        _expand('#[path = "a.rs"]\n#[path = "b.rs"]\nmod m;\n', {}, calls=calls)
    assert calls == ["a.rs"]


def test_both_conventional_files_is_ambiguous():
    files = {"a.rs": "mod b;\n", "a/b.rs": "", "a/b/mod.rs": ""}
    with pytest.raises(AmbiguousConventionalLocationsError) as ei:
        _expand("mod a;\n", files)
    assert ei.value.module == ("a", "b")
    assert "module `a::b`" in str(ei.value)


def test_malformed_attribute_reports_module_path():
    files = {"a.rs": "#[path]\nmod b;\n"}
    with pytest.raises(MalformedLocationOverrideError) as ei:
        _expand("mod a;\n", files)
    assert ei.value.module == ("a", "b")


def test_parse_error_in_child_file_carries_file_and_module():
    with pytest.raises(ParseFailedError) as ei:
        _expand("mod a;\n", {"a.rs": "fn broken( {\n"})
    assert ei.value.file == "a.rs"
    assert ei.value.module == ("a",)


def test_resolver_exception_is_wrapped():
    def boom(module, path):
        raise RuntimeError("disk on fire")

    tree = parse_file("mod a;\n")
    with pytest.raises(ResolutionFailedError) as ei:
        expand_modules_into_inline_modules(tree, ResolverHelper(resolve_fn=boom))
    assert ei.value.code == "E_RESOLVE_FAILED"
    assert "disk on fire" in ei.value.message
    assert isinstance(ei.value.__cause__, RuntimeError)


def test_open_failure_in_conventional_lookup_is_fatal():
    def resolve(module, path):
        if str(path) == "a.rs":
            raise FileOpenFailedError(code="E_FILE_OPEN", message="permission denied", file="a.rs")
        if str(path) == "a/mod.rs":
            return parse_file("struct A;\n")
        return None

    tree = parse_file("mod a;\n")
    with pytest.raises(FileOpenFailedError) as ei:
        expand_modules_into_inline_modules(tree, ResolverHelper(resolve_fn=resolve))
    assert ei.value.module == ("a",)
    assert tree.items[0].is_external


def test_open_failure_is_fatal_for_override():
    def resolve(module, path):
        raise FileOpenFailedError(code="E_FILE_OPEN", message="permission denied", file=str(path))

    tree = parse_file('#[path = "p.rs"]\nmod a;\n')
    with pytest.raises(FileOpenFailedError) as ei:
        expand_modules_into_inline_modules(tree, ResolverHelper(resolve_fn=resolve))
    assert ei.value.module == ("a",)


def test_cfg_callback_exception_is_wrapped():
    def check(guard):
        raise ValueError("no idea")

    tree = parse_file("#[cfg(unix)]\nmod a;\n")
    with pytest.raises(GuardEvaluationFailedError) as ei:
        expand_modules_into_inline_modules(tree, ResolverHelper(resolve_fn=lambda m, p: None, check_cfg_fn=check))
    assert ei.value.code == "E_CFG_CHECK_FAILED"
    assert ei.value.module == ("a",)


def test_error_leaves_tree_untouched():
    src = "mod ok;\nmod bad;\n"
    tree = parse_file(src)
    files = {"ok.rs": "struct Ok;\n", "bad.rs": "", "bad/mod.rs": ""}
    with pytest.raises(AmbiguousConventionalLocationsError):
        expand_modules_into_inline_modules(tree, _resolver(files))
    assert tree == parse_file(src)
