from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .lib.pkg import split_package_args
from .lib.runtime import SUPPORTED_RUNTIMES

DEFAULT_IMAGE = "docker.io/library/archlinux:latest"
DEFAULT_CONFIG_PATH = "~/.config/tempsystem/config.yaml"
HISTORY_MODES = ("none", "copy", "mount")


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return split_package_args([value])
    return split_package_args(str(v) for v in value)


@dataclass(frozen=True)
class SessionConfig:
    raw: Dict[str, Any]

    @property
    def image(self) -> str:
        return str(self.raw.get("image") or DEFAULT_IMAGE)

    @property
    def runtime(self) -> str:
        return str(self.raw.get("runtime") or "docker")

    @property
    def user(self) -> str:
        return str(self.raw.get("user") or "tempsystem")

    @property
    def shell(self) -> str:
        return str(self.raw.get("shell") or "/usr/bin/zsh")

    @property
    def extra_packages(self) -> List[str]:
        return _as_list(self.raw.get("extra_packages"))

    @property
    def extra_aur_packages(self) -> List[str]:
        return _as_list(self.raw.get("extra_aur_packages"))

    @property
    def update_system(self) -> bool:
        return bool(self.raw.get("update_system", False))

    @property
    def update_pkgfile(self) -> bool:
        return bool(self.raw.get("update_pkgfile", False))

    @property
    def chaotic_aur(self) -> bool:
        return bool(self.raw.get("chaotic_aur", False))

    @property
    def command_not_found(self) -> Optional[str]:
        v = self.raw.get("command_not_found")
        return str(Path(str(v)).expanduser()) if v else None

    @property
    def mount_cwd(self) -> bool:
        return bool(self.raw.get("mount_cwd", True))

    @property
    def ro_cwd(self) -> bool:
        return bool(self.raw.get("ro_cwd", False))

    @property
    def privileged(self) -> bool:
        return bool(self.raw.get("privileged", False))

    @property
    def sync_zsh_history(self) -> str:
        return str(self.raw.get("sync_zsh_history") or "none").lower()

    @property
    def step_timeout(self) -> Optional[float]:
        v = self.raw.get("step_timeout")
        return float(v) if v else None

    @property
    def command(self) -> List[str]:
        cmd = self.raw.get("command") or [self.shell]
        return [str(c) for c in cmd]

    @property
    def dry_run(self) -> bool:
        return bool(self.raw.get("dry_run", False))

    def validate(self) -> None:
        if not self.image.strip():
            raise ValueError("image must be a non-empty string")
        if self.runtime not in SUPPORTED_RUNTIMES:
            raise ValueError(f"runtime must be one of {', '.join(SUPPORTED_RUNTIMES)}")
        if self.sync_zsh_history not in HISTORY_MODES:
            raise ValueError(f"sync_zsh_history must be one of {', '.join(HISTORY_MODES)}")
        if self.command_not_found and not self.dry_run and not os.path.isfile(self.command_not_found):
            raise FileNotFoundError(self.command_not_found)

    def merged(self, overrides: Dict[str, Any]) -> "SessionConfig":
        """Return a copy with non-None overrides applied on top."""

        raw = dict(self.raw)
        raw.update({k: v for k, v in overrides.items() if v is not None})
        return SessionConfig(raw=raw)


def load_session_config(path: Optional[str] = None) -> SessionConfig:
    """Load the YAML config; a missing default config file is not an error."""

    explicit = path is not None
    p = Path(path or DEFAULT_CONFIG_PATH).expanduser()
    if not p.exists():
        if explicit:
            raise FileNotFoundError(str(p))
        return SessionConfig(raw={})

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("tempsystem config must be YAML")

    try:
        import yaml  # type: ignore
    except Exception as e:
        raise RuntimeError("PyYAML is required to read the tempsystem config") from e

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{p} must contain a mapping/object")

    return SessionConfig(raw=raw)
