"""
Configuration schema (``viatico_config.schema``).

``ViaticoSettings`` is the runtime settings object: infrastructure
settings (database URL, log level) plus the ``KernelSettings`` business
defaults that the kernel services consume.  Validation happens at
construction, in ``__post_init__``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from decimal import Decimal, InvalidOperation
from typing import Any, Self

from viatico_kernel.domain.settings import KernelSettings
from viatico_kernel.logging_config import get_logger

logger = get_logger("config.schema")

_LOG_LEVELS = frozenset(logging.getLevelNamesMapping())


@dataclass(frozen=True)
class ViaticoSettings:
    config_id: str = "viatico-default"
    config_version: int = 1
    database_url: str = "sqlite:///viatico.db"
    log_level: str = "INFO"
    kernel: KernelSettings = field(default_factory=KernelSettings)

    def __post_init__(self):
        if not self.database_url:
            raise ValueError("database_url cannot be empty")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"log_level must be a logging level name, got '{self.log_level}'")
        if self.config_version < 1:
            raise ValueError("config_version must be at least 1")

        logger.info(
            "viatico_settings_initialized",
            extra={
                "config_id": self.config_id,
                "config_version": self.config_version,
                "log_level": self.log_level,
                "default_daily_amount": str(self.kernel.default_daily_amount),
                "default_area_name": self.kernel.default_area_name,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """
        Build settings from a parsed YAML mapping.

        Raises:
            ValueError: Unknown keys, a non-numeric amount, or any check
                in ``__post_init__``.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

        kernel_data = dict(data.get("kernel") or {})
        kernel_known = {f.name for f in fields(KernelSettings)}
        kernel_unknown = set(kernel_data) - kernel_known
        if kernel_unknown:
            raise ValueError(f"Unknown kernel configuration keys: {sorted(kernel_unknown)}")

        if "default_daily_amount" in kernel_data:
            raw = kernel_data["default_daily_amount"]
            if isinstance(raw, float):
                raise ValueError("default_daily_amount must be quoted or an integer, not a float")
            try:
                kernel_data["default_daily_amount"] = Decimal(str(raw))
            except InvalidOperation as exc:
                raise ValueError(f"default_daily_amount is not numeric: {raw!r}") from exc

        top = {k: v for k, v in data.items() if k != "kernel"}
        return cls(kernel=KernelSettings(**kernel_data), **top)
