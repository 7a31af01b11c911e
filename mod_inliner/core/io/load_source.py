from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

from mod_inliner.core.errors import FileOpenFailedError, ParseFailedError
from mod_inliner.core.expand.expand_modules import expand_modules_into_inline_modules
from mod_inliner.core.expand.resolver import CheckCfgFn
from mod_inliner.core.model import Guard, ModulePath, SourceFile
from mod_inliner.core.syntax.parse_source import parse_file

logger = logging.getLogger(__name__)


def read_source_file(path: str | Path, *, module: ModulePath = ()) -> SourceFile:
    """Read and parse one source file.

    Raises FileOpenFailedError when the file cannot be read and
    ParseFailedError when it does not parse; both carry the file and module.
    """

    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FileOpenFailedError(
            code="E_FILE_OPEN",
            message=f"Cannot open file {p}: {e}",
            module=module,
            file=str(p),
        ) from e

    try:
        return parse_file(text, file=str(p))
    except ParseFailedError as e:
        raise e.with_context(module=module, file=str(p)) from None


@dataclass
class FileSystemResolver:
    """Resolver reading candidate files relative to the root file's directory."""

    root_dir: Path
    check_cfg_fn: CheckCfgFn
    allow_duplicates: bool = False

    def resolve(self, module: ModulePath, relative_path: PurePosixPath) -> Optional[SourceFile]:
        path = self.root_dir / relative_path
        logger.debug("loading %s for module %s", path, "::".join(module))
        try:
            return read_source_file(path, module=module)
        except FileOpenFailedError as e:
            # only a missing file means "no module here"; unreadable files are fatal
            if isinstance(e.__cause__, (FileNotFoundError, NotADirectoryError)):
                return None
            raise

    def check_cfg(self, guard: Guard) -> bool:
        return self.check_cfg_fn(guard)

    def allow_duplicate_modules(self) -> bool:
        return self.allow_duplicates


def read_full_crate_source_code(path: str | Path, cfg_handler: CheckCfgFn) -> SourceFile:
    """Load a root source file and expand every module it declares, recursively.

    `cfg_handler` answers `#[cfg]` / `#[cfg_attr(.., path)]` checks.

    Note: module files may point anywhere through `#[path]`, including back at
    themselves; nothing guards against that.
    """

    p = Path(path)
    tree = read_source_file(p)
    resolver = FileSystemResolver(root_dir=p.parent, check_cfg_fn=cfg_handler)
    expand_modules_into_inline_modules(tree, resolver)
    return tree


def read_full_crate_source_code_with_dupes(path: str | Path) -> SourceFile:
    """Like read_full_crate_source_code, but keeps every cfg variant of a module.

    Each variant gets a `#[cfg(...)]` attribute; every cfg check answers true.
    """

    p = Path(path)
    tree = read_source_file(p)
    resolver = FileSystemResolver(root_dir=p.parent, check_cfg_fn=_always_true, allow_duplicates=True)
    expand_modules_into_inline_modules(tree, resolver)
    return tree


def _always_true(_guard: Guard) -> bool:
    return True
