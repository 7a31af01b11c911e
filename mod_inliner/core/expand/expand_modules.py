"""Module expansion engine.

Walks a parsed tree and replaces every `mod name;` with `mod name { ... }`
holding the content of the file the module lives in. Files are located by
convention (`name.rs`, `name/mod.rs`) or by `#[path]` / `#[cfg_attr(.., path)]`
overrides; loading and cfg evaluation are delegated to a Resolver.

Two directory stacks are carried through the recursion. "Natural" dirs are
where conventionally located children are looked up; "attribute" dirs are what
`#[path]` values of children are joined onto. They differ for a module loaded
from `name.rs`: its children live in `name/`, but its `#[path]` attributes are
relative to the directory `name.rs` itself is in. A module loaded through an
override rebases both stacks onto the override file's directory.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import PurePosixPath
from typing import Iterator, Optional, Sequence

from mod_inliner.core.attrs.classify_attrs import classify_attributes
from mod_inliner.core.errors import (
    AmbiguousConventionalLocationsError,
    GuardEvaluationFailedError,
    ModuleExpandError,
    MultipleExplicitLocationsError,
    ResolutionFailedError,
)
from mod_inliner.core.expand.resolver import Resolver
from mod_inliner.core.expand.splice import cfg_attribute, splice_module
from mod_inliner.core.model import (
    Guard,
    Item,
    ModuleDeclaration,
    ModulePath,
    SourceFile,
    guard_tokens,
    residual_guard,
)
from mod_inliner.core.syntax.render import render_tokens

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".rs"
INDEX_FILE_STEM = "mod"

Dirs = tuple[str, ...]


def expand_modules_into_inline_modules(
    tree: SourceFile,
    resolver: Resolver,
    *,
    source_suffix: str = SOURCE_SUFFIX,
) -> None:
    """Expand every external module declaration of `tree` in place.

    Raises the first ModuleExpandError encountered; `tree` is left untouched
    in that case. Modules whose file cannot be found stay `mod name;`.
    """

    multi = bool(resolver.allow_duplicate_modules())
    expander = _Expander(resolver=resolver, multi=multi, suffix=source_suffix)
    tree.items[:] = expander.expand_items(tree.items, (), (), ())


def iter_modules(items: Sequence[Item], prefix: ModulePath = ()) -> Iterator[tuple[ModulePath, ModuleDeclaration]]:
    """Every module declaration, depth-first, with its full path."""
    for item in items:
        if not isinstance(item, ModuleDeclaration):
            continue
        module = prefix + (item.name,)
        yield module, item
        if item.content is not None:
            yield from iter_modules(item.content, module)


def find_external_modules(items: Sequence[Item], prefix: ModulePath = ()) -> list[ModulePath]:
    """Module paths of declarations that are still `mod name;`."""
    return [module for module, decl in iter_modules(items, prefix) if decl.is_external]


@dataclass(frozen=True)
class _Candidate:
    result: Optional[SourceFile]
    dirs_nat: Dirs
    dirs_attr: Dirs
    guard: Optional[Guard] = None


@dataclass
class _Expander:
    resolver: Resolver
    multi: bool
    suffix: str

    def expand_items(self, items: Sequence[Item], module: ModulePath, dirs_nat: Dirs, dirs_attr: Dirs) -> list[Item]:
        out: list[Item] = []
        for item in items:
            if not isinstance(item, ModuleDeclaration):
                out.append(item)
            elif item.content is not None:
                # inline block: nothing to load, but children may be external
                inner = dirs_nat + (_file_stem(item.name),)
                content = self.expand_items(item.content, module + (item.name,), inner, inner)
                out.append(replace(item, content=content))
            else:
                out.extend(self.expand_declaration(item, module, dirs_nat, dirs_attr))
        return out

    def expand_declaration(
        self,
        decl: ModuleDeclaration,
        parent: ModulePath,
        dirs_nat: Dirs,
        dirs_attr: Dirs,
    ) -> list[Item]:
        module = parent + (decl.name,)
        stem = _file_stem(decl.name)
        classified = classify_attributes(decl.attrs, module=module)

        for guard in classified.guards:
            if not self._check(guard, module):
                logger.debug("module %s disabled by cfg, dropping it", _display(module))
                return []

        candidates: list[_Candidate] = []
        accepted: list[Guard] = []
        try_conventional = True

        for override in classified.overrides:
            if override.guard is None and candidates and not self.multi:
                raise _multiple_paths(module)

            path = _join(dirs_attr) / override.path
            rebased = (str(path.parent),)

            if override.guard is not None:
                if not self._check(override.guard, module):
                    logger.debug("module %s: skipping #[path] %s, cfg is false", _display(module), override.path)
                    continue
                if candidates and not self.multi:
                    raise _multiple_paths(module)
                if not self.multi:
                    try_conventional = False
                accepted.append(override.guard)
            else:
                try_conventional = False

            candidates.append(
                _Candidate(
                    result=self._resolve(module, path),
                    dirs_nat=rebased,
                    dirs_attr=rebased,
                    guard=override.guard,
                )
            )

        if try_conventional:
            for candidate in self._conventional(module, stem, dirs_nat):
                if self.multi and accepted:
                    candidate = replace(candidate, guard=residual_guard(accepted))
                candidates.append(candidate)

        out: list[Item] = []
        for candidate in candidates:
            if candidate.result is None:
                continue
            resolved = candidate.result
            attrs = list(classified.passthrough)
            if self.multi and candidate.guard is not None:
                attrs.append(cfg_attribute(candidate.guard))
            resolved = SourceFile(
                attrs=resolved.attrs,
                items=self.expand_items(resolved.items, module, candidate.dirs_nat, candidate.dirs_attr),
            )
            out.append(splice_module(decl, attrs, resolved))

        if not out:
            logger.debug("module %s: no file found, leaving it unexpanded", _display(module))
            return [decl]
        return out

    def _conventional(self, module: ModulePath, stem: str, dirs_nat: Dirs) -> list[_Candidate]:
        base = _join(dirs_nat)
        flat = self._resolve(module, base / f"{stem}{self.suffix}")
        index = self._resolve(module, base / stem / f"{INDEX_FILE_STEM}{self.suffix}")

        if flat is not None and index is not None and not self.multi:
            raise AmbiguousConventionalLocationsError(
                code="E_BOTH_MOD_RS_AND_NAME_RS",
                message=f"Both {stem}/{INDEX_FILE_STEM}{self.suffix} and {stem}{self.suffix} present",
                module=module,
            )
        found: list[_Candidate] = []
        if flat is not None:
            found.append(_Candidate(result=flat, dirs_nat=dirs_nat + (stem,), dirs_attr=dirs_nat))
        if index is not None:
            found.append(_Candidate(result=index, dirs_nat=dirs_nat + (stem,), dirs_attr=dirs_nat + (stem,)))
        return found

    def _resolve(self, module: ModulePath, path: PurePosixPath) -> Optional[SourceFile]:
        logger.debug("module %s: trying %s", _display(module), path)
        try:
            return self.resolver.resolve(module, path)
        except ModuleExpandError as e:
            if e.module:
                raise
            raise e.with_context(module=module) from e
        except Exception as e:
            raise ResolutionFailedError(
                code="E_RESOLVE_FAILED",
                message=f"Error from callback: {e}",
                module=module,
            ) from e

    def _check(self, guard: Guard, module: ModulePath) -> bool:
        try:
            answer = bool(self.resolver.check_cfg(guard))
        except ModuleExpandError as e:
            if e.module:
                raise
            raise e.with_context(module=module) from e
        except Exception as e:
            raise GuardEvaluationFailedError(
                code="E_CFG_CHECK_FAILED",
                message=f"Error from callback: {e}",
                module=module,
            ) from e
        logger.debug("module %s: cfg(%s) -> %s", _display(module), render_tokens(guard_tokens(guard)), answer)
        return answer


def _multiple_paths(module: ModulePath) -> MultipleExplicitLocationsError:
    return MultipleExplicitLocationsError(
        code="E_MULTIPLE_EXPLICIT_PATHS",
        message="The module has multiple explicit #[path] directives",
        module=module,
    )


def _join(dirs: Dirs) -> PurePosixPath:
    return PurePosixPath(*dirs)


def _file_stem(name: str) -> str:
    return name[2:] if name.startswith("r#") else name


def _display(module: ModulePath) -> str:
    return "::".join(module)
