from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    """Locations inside the container, derived from the session user."""

    user: str = "tempsystem"
    shell: str = "/usr/bin/zsh"

    @property
    def home(self) -> str:
        return f"/home/{self.user}"

    @property
    def work_dir(self) -> str:
        return f"{self.home}/work"

    @property
    def zsh_history(self) -> str:
        return f"{self.home}/.zsh_history"

    @property
    def omz_dir(self) -> str:
        return f"{self.home}/.oh-my-zsh"

    @property
    def omz_plugins_dir(self) -> str:
        return f"{self.omz_dir}/custom/plugins"

    @property
    def aur_helper_src(self) -> str:
        return f"{self.home}/.yay-source"


OMZ_INSTALLER_PATH = "/tmp/ohmyzsh-install.sh"
CNF_STAGING_PATH = "/tmp/command-not-found.zsh"
CNF_INSTALL_PATH = "/usr/share/doc/pkgfile/command-not-found.zsh"
MAKEPKG_CONF = "/etc/makepkg.conf"
SUDOERS_DIR = "/etc/sudoers.d"
