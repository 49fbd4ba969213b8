"""Ordered provisioning steps for a fresh Arch Linux container.

Steps are plain descriptors; ``pipeline.run_pipeline`` executes them. The
sequence is built once per session from a ProvisioningPlan, so both variants
(with and without a staged command-not-found helper) come from the same list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .lib.env import (
    CNF_INSTALL_PATH,
    CNF_STAGING_PATH,
    MAKEPKG_CONF,
    OMZ_INSTALLER_PATH,
    SUDOERS_DIR,
    Paths,
)
from .lib.net import OMZ_INSTALLER_URL, fetch_argv, git_clone_argv
from .lib.pkg import (
    BASE_PACKAGES,
    chaotic_aur_argvs,
    dedup,
    makepkg_argv,
    makepkg_tune_argv,
    pacman_install_argv,
    pacman_remove_orphans_argv,
    pacman_search_argv,
    pacman_sync_argv,
    pacman_upgrade_local_argv,
    pkgfile_update_argv,
    yay_install_argv,
    yay_search_argv,
)

logger = logging.getLogger(__name__)

ROOT = "root"

SHELL_PLUGINS: Tuple[Tuple[str, str], ...] = (
    ("zsh-autosuggestions", "https://github.com/zsh-users/zsh-autosuggestions"),
    ("zsh-syntax-highlighting", "https://github.com/zsh-users/zsh-syntax-highlighting.git"),
)
AUR_HELPER_REPO = "https://aur.archlinux.org/yay.git"


@dataclass(frozen=True)
class StepCommand:
    argv: Tuple[str, ...]
    user: str = ROOT
    # Set on lookups; a non-zero exit then means the package does not exist.
    checks_package: Optional[str] = None

    @classmethod
    def of(cls, argv: Sequence[str], user: str = ROOT, *, checks_package: Optional[str] = None) -> "StepCommand":
        return cls(argv=tuple(argv), user=user, checks_package=checks_package)


@dataclass(frozen=True)
class ProvisioningStep:
    step_id: str
    commands: Tuple[StepCommand, ...]
    tolerate_failure: bool = False
    # Always run after ``commands``, whatever their outcome.
    cleanup: Tuple[StepCommand, ...] = ()


@dataclass(frozen=True)
class ProvisioningPlan:
    paths: Paths = field(default_factory=Paths)
    extra_packages: Tuple[str, ...] = ()
    extra_aur_packages: Tuple[str, ...] = ()
    update_system: bool = False
    update_pkgfile: bool = False
    stage_command_not_found: bool = False
    chaotic_aur: bool = False
    installer_url: str = OMZ_INSTALLER_URL

    @property
    def base_packages(self) -> List[str]:
        base = list(BASE_PACKAGES)
        if self.stage_command_not_found or self.update_pkgfile:
            base.append("pkgfile")
        return base


def _add_chaotic_aur(plan: ProvisioningPlan) -> ProvisioningStep:
    return ProvisioningStep("03_add_chaotic_aur", tuple(StepCommand.of(a) for a in chaotic_aur_argvs()))


def _check_packages(plan: ProvisioningPlan) -> ProvisioningStep:
    return ProvisioningStep(
        "05_check_packages",
        (
            StepCommand.of(pacman_sync_argv()),
            *(StepCommand.of(pacman_search_argv(pkg), checks_package=pkg) for pkg in dedup(plan.extra_packages)),
        ),
    )


def _install_base(plan: ProvisioningPlan) -> ProvisioningStep:
    argv = pacman_install_argv(plan.extra_packages, base=plan.base_packages, upgrade=plan.update_system)
    return ProvisioningStep("10_install_base", (StepCommand.of(argv),))


def _create_user(plan: ProvisioningPlan) -> ProvisioningStep:
    p = plan.paths
    useradd = f"id -u {p.user} >/dev/null 2>&1 || useradd --create-home --groups wheel {p.user}"
    sudoers = f"echo '{p.user} ALL=(ALL) NOPASSWD: ALL' > {SUDOERS_DIR}/{p.user} && chmod 0440 {SUDOERS_DIR}/{p.user}"
    return ProvisioningStep(
        "15_create_user",
        (
            StepCommand.of(["sh", "-c", useradd]),
            # A bind mount below home can leave it root-owned.
            StepCommand.of(["chown", f"{p.user}:{p.user}", p.home]),
            StepCommand.of(["sh", "-c", sudoers]),
            StepCommand.of(["mkdir", "-p", p.work_dir], p.user),
        ),
    )


def _stage_command_not_found(plan: ProvisioningPlan) -> ProvisioningStep:
    return ProvisioningStep(
        "20_stage_command_not_found",
        (
            StepCommand.of(["install", "-Dm644", CNF_STAGING_PATH, CNF_INSTALL_PATH]),
            StepCommand.of(pkgfile_update_argv()),
        ),
        cleanup=(StepCommand.of(["rm", "-f", CNF_STAGING_PATH]),),
    )


def _update_pkgfile(plan: ProvisioningPlan) -> ProvisioningStep:
    return ProvisioningStep("25_update_pkgfile", (StepCommand.of(pkgfile_update_argv()),))


def _change_shell(plan: ProvisioningPlan) -> ProvisioningStep:
    p = plan.paths
    return ProvisioningStep("30_change_shell", (StepCommand.of(["chsh", "-s", p.shell, p.user]),))


def _install_shell_framework(plan: ProvisioningPlan) -> ProvisioningStep:
    user = plan.paths.user
    return ProvisioningStep(
        "40_install_shell_framework",
        (
            StepCommand.of(fetch_argv(plan.installer_url, OMZ_INSTALLER_PATH), user),
            StepCommand.of(["chmod", "+x", OMZ_INSTALLER_PATH], user),
            StepCommand.of([OMZ_INSTALLER_PATH, "--unattended", "--keep-zshrc"], user),
        ),
        cleanup=(StepCommand.of(["rm", "-f", OMZ_INSTALLER_PATH], user),),
    )


def _install_shell_plugins(plan: ProvisioningPlan) -> ProvisioningStep:
    p = plan.paths
    return ProvisioningStep(
        "50_install_shell_plugins",
        tuple(
            StepCommand.of(git_clone_argv(url, f"{p.omz_plugins_dir}/{name}"), p.user)
            for name, url in SHELL_PLUGINS
        ),
    )


def _tune_makepkg(plan: ProvisioningPlan) -> ProvisioningStep:
    return ProvisioningStep("60_tune_makepkg", (StepCommand.of(makepkg_tune_argv(MAKEPKG_CONF)),))


def _install_aur_helper(plan: ProvisioningPlan) -> ProvisioningStep:
    p = plan.paths
    src = p.aur_helper_src
    return ProvisioningStep(
        "70_install_aur_helper",
        (
            StepCommand.of(git_clone_argv(AUR_HELPER_REPO, src), p.user),
            StepCommand.of(makepkg_argv(src), p.user),
            StepCommand.of(pacman_upgrade_local_argv(f"{src}/*.pkg.*")),
        ),
    )


def _install_aur_packages(plan: ProvisioningPlan) -> ProvisioningStep:
    user = plan.paths.user
    return ProvisioningStep(
        "75_install_aur_packages",
        (
            *(
                StepCommand.of(yay_search_argv(pkg), user, checks_package=pkg)
                for pkg in dedup(plan.extra_aur_packages)
            ),
            StepCommand.of(yay_install_argv(plan.extra_aur_packages), user),
        ),
    )


def _remove_orphans(plan: ProvisioningPlan) -> ProvisioningStep:
    return ProvisioningStep(
        "80_remove_orphans",
        (StepCommand.of(pacman_remove_orphans_argv()),),
        tolerate_failure=True,
    )


def _cleanup_build_dir(plan: ProvisioningPlan) -> ProvisioningStep:
    p = plan.paths
    return ProvisioningStep("90_cleanup_build_dir", (StepCommand.of(["rm", "-rf", p.aur_helper_src], p.user),))


def build_steps(plan: ProvisioningPlan) -> List[ProvisioningStep]:
    steps: List[ProvisioningStep] = []
    if plan.chaotic_aur:
        steps.append(_add_chaotic_aur(plan))
    if plan.extra_packages:
        steps.append(_check_packages(plan))
    steps += [_install_base(plan), _create_user(plan)]
    if plan.stage_command_not_found:
        steps.append(_stage_command_not_found(plan))
    elif plan.update_pkgfile:
        # Staging already refreshes the database.
        steps.append(_update_pkgfile(plan))
    steps += [
        _change_shell(plan),
        _install_shell_framework(plan),
        _install_shell_plugins(plan),
        _tune_makepkg(plan),
        _install_aur_helper(plan),
    ]
    if plan.extra_aur_packages:
        steps.append(_install_aur_packages(plan))
    steps += [_remove_orphans(plan), _cleanup_build_dir(plan)]

    logger.debug("Provisioning plan: %s", ", ".join(s.step_id for s in steps))
    return steps
