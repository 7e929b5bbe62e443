from __future__ import annotations

from ipaddress import AddressValueError, IPv4Address
from pathlib import Path
from typing import Iterable, Optional

import structlog
import yaml
from pydantic import ValidationError

from sixtofour_manager.errors import ConfigurationError
from sixtofour_manager.models import RunConfig, Settings

log = structlog.get_logger()

DEFAULT_SETTINGS_PATH = Path("/etc/sixtofour/config.yaml")


def load_settings(path: Optional[Path]) -> Settings:
    """
    Читает YAML с настройками хоста. Файла нет -> значения по умолчанию.
    Ключи верхнего уровня совпадают с полями Settings.
    """
    if path is None or not path.exists():
        log.debug("settings_defaults", path=str(path) if path else None)
        return Settings()
    try:
        with path.open("r", encoding="utf-8") as f:
            doc = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"cannot read {path}: {e}") from e
    if doc is None:
        return Settings()
    if not isinstance(doc, dict):
        raise ConfigurationError(f"{path}: settings must be a mapping")
    try:
        settings = Settings.model_validate(doc)
    except ValidationError as e:
        raise ConfigurationError(f"invalid settings in {path}: {e}") from e
    log.debug("settings_loaded", path=str(path))
    return settings


def _parse_override(value: Optional[str]) -> Optional[IPv4Address]:
    if value is None:
        return None
    try:
        return IPv4Address(value.strip())
    except AddressValueError as e:
        raise ConfigurationError(f"-i expects an IPv4 address, got {value!r}") from e


def build_run_config(
    settings: Settings,
    ipv4: Optional[str] = None,
    radvd_enabled: bool = True,
    interfaces: Iterable[str] = (),
    debug: bool = False,
) -> RunConfig:
    return RunConfig(
        settings=settings,
        ipv4_override=_parse_override(ipv4),
        radvd_enabled=radvd_enabled,
        interfaces=tuple(interfaces or ()),
        debug=debug,
    )
