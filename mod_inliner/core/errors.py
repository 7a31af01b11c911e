from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class ModuleExpandError(Exception):
    """Base error envelope. Carries the module path being expanded when the error happened."""

    code: str
    message: str
    module: tuple[str, ...] = ()
    file: Optional[str] = None

    @property
    def module_display(self) -> str:
        return "::".join(self.module)

    def with_context(self, *, module: tuple[str, ...] | None = None, file: str | None = None) -> ModuleExpandError:
        """Return a copy with module/file filled in where they are still missing."""
        return replace(
            self,
            module=self.module or (module or ()),
            file=self.file or file,
        )

    def __str__(self) -> str:
        loc = self.file or "<input>"
        if not self.module:
            return f"{loc}: {self.code}: {self.message}"
        return f"{loc}: {self.code}: module `{self.module_display}`: {self.message}"


class AttributeParseError(ModuleExpandError):
    pass


class MalformedLocationOverrideError(AttributeParseError):
    pass


class MalformedConditionalOverrideError(AttributeParseError):
    pass


class MalformedGuardError(AttributeParseError):
    pass


class MultipleExplicitLocationsError(ModuleExpandError):
    pass


class AmbiguousConventionalLocationsError(ModuleExpandError):
    pass


class GuardEvaluationFailedError(ModuleExpandError):
    pass


class ResolutionFailedError(ModuleExpandError):
    pass


class FileOpenFailedError(ResolutionFailedError):
    pass


class ParseFailedError(ResolutionFailedError):
    pass
