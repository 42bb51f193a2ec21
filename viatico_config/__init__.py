"""
viatico_config -- single public entrypoint for runtime configuration.

``get_active_config()`` is the ONLY way to obtain settings at runtime.  No
other component reads configuration files.  The kernel itself never
imports this package; it receives ``KernelSettings`` from whoever wires it
up (``settings.kernel``).

Every successful call emits a ``viatico_config_loaded`` log record with
the config id, version and the SHA-256 checksum of the source set, tying
the running system to an exact configuration version.
"""

from __future__ import annotations

from pathlib import Path

from viatico_config.loader import load_settings
from viatico_config.schema import ViaticoSettings
from viatico_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> ViaticoSettings:
    """
    Load, validate and return the active settings.

    Args:
        config_path: YAML configuration set.  Defaults to
            ``viatico_config/sets/default.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If validation fails.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    settings, checksum = load_settings(path)

    _logger.info(
        "viatico_config_loaded",
        extra={
            "config_id": settings.config_id,
            "config_version": settings.config_version,
            "checksum": checksum,
            "source": str(path),
        },
    )
    return settings


__all__ = ["ViaticoSettings", "get_active_config"]
