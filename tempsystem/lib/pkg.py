from __future__ import annotations

import logging
import re
from typing import Iterable, Sequence

logger = logging.getLogger(__name__)

BASE_PACKAGES: tuple[str, ...] = (
    "zsh",
    "curl",
    "git",
    "figlet",
    "lolcat",
    "fzf",
    "openssl",
    "sudo",
    "base-devel",
)

MAKEPKG_OPTIONS = "OPTIONS=(strip docs !libtool !staticlibs emptydirs zipman purge !debug !lto !autodeps)"

PACMAN_COMMON = ["--noprogressbar", "--needed", "--noconfirm"]

_SPLIT_RE = re.compile(r"[\s,]+")


def split_package_args(values: Iterable[str] | None) -> list[str]:
    """Flatten repeated, comma- or space-delimited package options."""

    out: list[str] = []
    for v in values or []:
        out.extend(p for p in _SPLIT_RE.split(str(v)) if p)
    return out


def dedup(names: Iterable[str]) -> list[str]:
    # De-dup while preserving order
    out: list[str] = []
    for n in names:
        if n not in out:
            out.append(n)
    return out


def pacman_install_argv(
    extra_packages: Sequence[str] = (),
    *,
    base: Sequence[str] = BASE_PACKAGES,
    upgrade: bool = False,
) -> list[str]:
    """Sync the databases and install base + extra packages in one transaction."""

    packages = dedup([*base, *extra_packages])
    return ["pacman", *PACMAN_COMMON, "-Syu" if upgrade else "-Sy", *packages]


def pacman_upgrade_local_argv(glob: str) -> list[str]:
    # Shell needed for the glob.
    return ["sh", "-c", f"pacman --upgrade --needed --noconfirm --noprogressbar {glob}"]


def pacman_remove_orphans_argv() -> list[str]:
    # Exits non-zero when there is nothing to remove.
    return ["sh", "-c", "pacman -Rsn --noconfirm $(pacman -Qtdq)"]


def pkgfile_update_argv() -> list[str]:
    return ["pkgfile", "-u"]


def makepkg_argv(src_dir: str) -> list[str]:
    return ["makepkg", "-s", "--noprogressbar", "--noconfirm", "--needed", "--dir", src_dir]


def makepkg_tune_argv(conf_path: str, options: str = MAKEPKG_OPTIONS) -> list[str]:
    return ["sh", "-c", f"echo '{options}' >> {conf_path}"]


def yay_install_argv(packages: Sequence[str]) -> list[str]:
    return ["yay", "--sync", "--needed", "--noconfirm", "--noprogressbar", *dedup(packages)]


_ERE_SPECIAL = set(".+*?[](){}|^$\\")


def exact_name_pattern(name: str) -> str:
    return "^" + "".join("\\" + c if c in _ERE_SPECIAL else c for c in name) + "$"


def pacman_search_argv(package: str) -> list[str]:
    # Exits non-zero when no sync database has the package.
    return ["pacman", "-Ssq", exact_name_pattern(package)]


def yay_search_argv(package: str) -> list[str]:
    return ["yay", "--aur", "-Ssq", exact_name_pattern(package)]


def pacman_sync_argv() -> list[str]:
    return ["pacman", "--noprogressbar", "-Sy"]


CHAOTIC_KEY = "3056513887B78AEB"
CHAOTIC_KEYSERVER = "keyserver.ubuntu.com"
CHAOTIC_CDN = "https://cdn-mirror.chaotic.cx/chaotic-aur"
CHAOTIC_REPO_CONF = "\\n\\n# Added by tempsystem\\n[chaotic-aur]\\nInclude = /etc/pacman.d/chaotic-mirrorlist\\n"


def chaotic_aur_argvs(pacman_conf: str = "/etc/pacman.conf") -> list[list[str]]:
    """Trust the Chaotic-AUR key, install its keyring and mirrorlist, enable the repo."""

    return [
        ["pacman-key", "--init"],
        ["pacman-key", "--populate"],
        ["pacman-key", "--recv-key", CHAOTIC_KEY, "--keyserver", CHAOTIC_KEYSERVER],
        ["pacman-key", "--lsign-key", CHAOTIC_KEY],
        ["pacman", "-U", *PACMAN_COMMON, f"{CHAOTIC_CDN}/chaotic-keyring.pkg.tar.zst"],
        ["pacman", "-U", *PACMAN_COMMON, f"{CHAOTIC_CDN}/chaotic-mirrorlist.pkg.tar.zst"],
        ["sh", "-c", f"printf '{CHAOTIC_REPO_CONF}' >> {pacman_conf}"],
    ]
