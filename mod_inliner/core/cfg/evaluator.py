from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from mod_inliner.core.cfg.names import cfg_cli_name, cfg_env_name
from mod_inliner.core.model import Guard

logger = logging.getLogger(__name__)

ENV_PREFIX = "MOD_INLINER_"
ENV_DEFAULT_TRUE = ENV_PREFIX + "DEFAULTTRUE"
ENV_DEBUG_VARS = ENV_PREFIX + "DEBUGVARS"


@dataclass
class CfgEvaluator:
    """Answers cfg checks for the command line front end.

    Precedence: explicitly disabled names, then explicitly enabled names (or
    `true_by_default`), then `MOD_INLINER_<ENV_NAME>=1`, then
    `MOD_INLINER_DEFAULTTRUE=1`. The whole predicate is looked up by name;
    `all`/`any`/`not` are not interpreted.
    """

    enabled: set[str] = field(default_factory=set)
    disabled: set[str] = field(default_factory=set)
    true_by_default: bool = False
    debug_cli_names: bool = False
    env: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    report: Optional[Callable[[str], None]] = None

    def __call__(self, guard: Guard) -> bool:
        cli_name = cfg_cli_name(guard)
        env_name = ENV_PREFIX + cfg_env_name(guard)

        if self.report is not None:
            if self.env.get(ENV_DEBUG_VARS) == "1":
                self.report(env_name)
            if self.debug_cli_names:
                self.report(cli_name)

        answer = self._answer(cli_name, env_name)
        logger.debug("cfg %s (%s) -> %s", cli_name, env_name, answer)
        return answer

    def _answer(self, cli_name: str, env_name: str) -> bool:
        if cli_name in self.disabled:
            return False
        if self.true_by_default or cli_name in self.enabled:
            return True
        value = self.env.get(env_name)
        if value is not None:
            return value == "1"
        return self.env.get(ENV_DEFAULT_TRUE) == "1"
