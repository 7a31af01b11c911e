from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable, Optional, Protocol

from mod_inliner.core.model import Guard, ModulePath, SourceFile


class Resolver(Protocol):
    def resolve(self, module: ModulePath, relative_path: PurePosixPath) -> Optional[SourceFile]:
        """Load and parse the file at `relative_path` (relative to the root file's directory).

        Return None when there is no such file; raise a ModuleExpandError for
        anything else. May be called several times for one module, once per
        candidate location.
        """
        ...

    def check_cfg(self, guard: Guard) -> bool:
        """Answer whether a `#[cfg]` / `#[cfg_attr]` predicate holds."""
        ...

    def allow_duplicate_modules(self) -> bool:
        """Multi-variant mode: keep every cfg-selected variant of a module."""
        ...


ResolveFn = Callable[[ModulePath, PurePosixPath], Optional[SourceFile]]
CheckCfgFn = Callable[[Guard], bool]


def cfg_always_false(_guard: Guard) -> bool:
    return False


@dataclass
class ResolverHelper:
    """Build a Resolver out of plain callables."""

    resolve_fn: ResolveFn
    check_cfg_fn: CheckCfgFn = cfg_always_false
    allow_duplicates: bool = False

    def resolve(self, module: ModulePath, relative_path: PurePosixPath) -> Optional[SourceFile]:
        return self.resolve_fn(module, relative_path)

    def check_cfg(self, guard: Guard) -> bool:
        return self.check_cfg_fn(guard)

    def allow_duplicate_modules(self) -> bool:
        return self.allow_duplicates
