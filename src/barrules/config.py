"""Configuration for barrules."""

from __future__ import annotations

import logging
import os
import tomllib
from datetime import datetime
from pathlib import Path

from pydantic import AwareDatetime, BaseModel, Field

from barrules.bars import BarDriver
from barrules.rules import AggregationRule, parse_rule_spec

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BARRULES_CONFIG"
DEFAULT_CONFIG_FILE = "barrules.toml"


class RuleConfig(BaseModel):
    """Configuration for a single aggregation rule."""

    spec: str
    enabled: bool = True
    origin: AwareDatetime | None = None

    def build(self, origin: datetime | None = None) -> AggregationRule:
        """Construct the rule. An explicit origin overrides the configured one."""
        return parse_rule_spec(self.spec, origin=origin or self.origin)


class DriverConfig(BaseModel):
    """Settings for the bar driver."""

    skip_out_of_order: bool = False
    flush_on_end: bool = True

    def build(self, rule: AggregationRule) -> BarDriver:
        return BarDriver(rule, skip_out_of_order=self.skip_out_of_order)


class BarrulesConfig(BaseModel):
    """Top-level configuration."""

    driver: DriverConfig = Field(default_factory=DriverConfig)
    rules: list[RuleConfig] = Field(default_factory=list)

    def rule_config(self, spec: str) -> RuleConfig | None:
        """Return the config entry for a spec, if one is declared."""
        for rule_cfg in self.rules:
            if rule_cfg.spec == spec:
                return rule_cfg
        return None

    @classmethod
    def from_toml(cls, path: Path | str) -> BarrulesConfig:
        """Load configuration from a TOML file."""
        path = Path(path)
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return cls.model_validate(data)

    @classmethod
    def find_and_load(cls, explicit_path: str | None = None) -> BarrulesConfig | None:
        """Find and load config: explicit path > BARRULES_CONFIG env > barrules.toml in cwd.

        Returns None if no config file is found.
        """
        if explicit_path:
            logger.info("Loading config from %s", explicit_path)
            return cls.from_toml(explicit_path)
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            logger.info("Loading config from %s=%s", CONFIG_ENV_VAR, env_path)
            return cls.from_toml(env_path)
        default = Path(DEFAULT_CONFIG_FILE)
        if default.exists():
            logger.info("Loading config from %s", default)
            return cls.from_toml(default)
        return None
