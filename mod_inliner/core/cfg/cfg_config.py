from __future__ import annotations

from pathlib import Path

import yaml


class CfgConfigError(ValueError):
    pass


def load_cfg_file(path: str | Path) -> dict[str, bool]:
    """Load cfg answers from a YAML file.

    Format:
      unix: true
      'feature="serde"': false

    Keys are cfg names as printed by `--debug-cfg`. Returns name -> answer.
    """
    p = Path(path)
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise CfgConfigError(f"cfg file is not valid YAML: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise CfgConfigError("cfg file must be a mapping of cfg name -> true/false")

    out: dict[str, bool] = {}
    for k, v in raw.items():
        if not isinstance(k, str) or not k.strip():
            raise CfgConfigError("cfg names must be non-empty strings")
        if not isinstance(v, bool):
            raise CfgConfigError(f"cfg '{k}' must be true or false")
        out[k.strip()] = v
    return out


def merged_cfgs(
    from_file: dict[str, bool] | None,
    *,
    enabled: list[str] | None = None,
    disabled: list[str] | None = None,
) -> tuple[set[str], set[str]]:
    """Return (enabled, disabled) name sets; command line names override the file."""
    on: set[str] = set()
    off: set[str] = set()
    for name, value in (from_file or {}).items():
        (on if value else off).add(name)
    for name in enabled or []:
        on.add(name)
        off.discard(name)
    for name in disabled or []:
        off.add(name)
        on.discard(name)
    return on, off


def load_and_merge(
    cfg_file: str | None,
    *,
    enabled: list[str] | None = None,
    disabled: list[str] | None = None,
) -> tuple[set[str], set[str]]:
    if not cfg_file:
        return merged_cfgs(None, enabled=enabled, disabled=disabled)
    return merged_cfgs(load_cfg_file(cfg_file), enabled=enabled, disabled=disabled)
