"""Configuration for interpolation engines.

Settings can come from keyword arguments, an ``interpolant.yaml`` file or
``INTERPOLANT_*`` environment variables:

    use_cache: true
    ctx_name: globals
    recursion_limit: 9
    exec_fn_name: partial
    on_duplicate: ignore
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from interpolant.exceptions import ConfigError

IDENT_RX = re.compile(r"[A-Za-z_$][\w$]*")

DuplicatePolicy = Literal["overwrite", "throw", "ignore"]

ENV_PREFIX = "INTERPOLANT_"


class EngineConfig(BaseModel):
    """Engine settings shared by the trusted and restricted variants."""

    use_cache: bool = Field(
        default=True,
        description="Cache compiled renderers per (template, locals signature, ctx name)",
    )
    ctx_name: str = Field(
        default="ctx", description="Identifier the shared context is bound to"
    )
    recursion_limit: int = Field(
        default=9, ge=0, description="Maximum depth of nested partial expansion"
    )
    exec_fn_name: str = Field(
        default="partial", description="Name of the partial-invocation helper"
    )
    local_var_name: str = Field(
        default="PARTIAL", description="Name the invoked partial is bound to"
    )
    self_ref_key_name: str = Field(
        default="SELF", description="Name the prime context is bound to"
    )
    on_duplicate: DuplicatePolicy = Field(
        default="overwrite", description="Policy when a partial identity is reused"
    )

    model_config = {"extra": "forbid"}

    @field_validator("ctx_name", "exec_fn_name", "local_var_name", "self_ref_key_name")
    @classmethod
    def _must_be_identifier(cls, value: str) -> str:
        if not IDENT_RX.fullmatch(value):
            raise ValueError(
                f'Invalid identifier "{value}". Use a simple identifier.'
            )
        return value

    @classmethod
    def from_env(cls, base: EngineConfig | None = None) -> EngineConfig:
        """Overlay ``INTERPOLANT_*`` environment variables on *base*."""
        data: dict[str, Any] = (base or cls()).model_dump()
        for name in cls.model_fields:
            raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                data[name] = raw
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid {ENV_PREFIX}* environment: {e}") from e


def load_config(path: str | Path) -> EngineConfig:
    """Load an EngineConfig from a YAML file."""
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping")

    try:
        return EngineConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {path}: {e}") from e
