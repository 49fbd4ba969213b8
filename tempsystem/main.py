from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, Optional

from . import __version__
from .errors import ContainerRuntimeFailure, ProvisioningError, TempsystemError
from .lib.pkg import split_package_args
from .lib.runtime import SUPPORTED_RUNTIMES, CliRuntime
from .lifecycle import Lifecycle, install_interrupt_handlers
from .logging_utils import configure_logging
from .session_config import HISTORY_MODES, SessionConfig, load_session_config

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def run(cfg: SessionConfig, *, runtime: Optional[Any] = None, cwd: Optional[str] = None) -> int:
    """Run one session and map its outcome to a process exit code."""

    runtime = runtime or CliRuntime(binary=cfg.runtime, dry_run=cfg.dry_run)
    lc = Lifecycle(cfg, runtime, cwd=cwd)
    try:
        with lc:
            return lc.run()
    except ProvisioningError as e:
        logger.error("Provisioning failed at step %s: %s", e.step_id, e.cause)
        return EXIT_FAILURE
    except ContainerRuntimeFailure as e:
        logger.error("%s", e)
        return EXIT_FAILURE
    except TempsystemError as e:
        logger.error("Session failed: %s", e)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.warning("Interrupted (step=%s)", lc.progress.current_step)
        return EXIT_INTERRUPTED


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "image": args.image,
        "runtime": args.runtime,
        "extra_packages": split_package_args(args.extra_packages) or None,
        "extra_aur_packages": split_package_args(args.extra_aur_packages) or None,
        "update_system": args.update_system,
        "update_pkgfile": args.update_pkgfile,
        "chaotic_aur": args.chaotic_aur,
        "command_not_found": args.command_not_found,
        "mount_cwd": args.mount_cwd,
        "ro_cwd": args.ro_cwd,
        "privileged": args.privileged,
        "sync_zsh_history": args.sync_zsh_history,
        "command": args.command or None,
        "dry_run": args.dry_run,
    }


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="tempsystem",
        description="Create and enter a completely temporary system, whenever you want!",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument(
        "-p",
        "--extra-packages",
        action="append",
        default=[],
        metavar="PKGS",
        help="Extra packages to install (repeatable, comma or space delimited)",
    )
    p.add_argument(
        "-a",
        "--extra-aur-packages",
        action="append",
        default=[],
        metavar="PKGS",
        help="Same as --extra-packages, but installed from the AUR with yay",
    )
    p.add_argument("--image", default=None, help="Base image (default: archlinux:latest)")
    p.add_argument("--runtime", default=None, choices=SUPPORTED_RUNTIMES)
    p.add_argument("-u", "--update-system", action="store_true", default=None, help="Full system upgrade while installing")
    p.add_argument(
        "--update-pkgfile",
        action="store_true",
        default=None,
        help="Refresh the pkgfile database (slow; useful with --update-system or --chaotic-aur)",
    )
    p.add_argument("--chaotic-aur", action="store_true", default=None, help="Add the Chaotic-AUR repository")
    p.add_argument("--command-not-found", default=None, metavar="PATH", help="zsh command-not-found helper to stage")
    p.add_argument("-c", "--ro-cwd", action="store_true", default=None, help="Mount ~/work read only")
    p.add_argument(
        "-d",
        "--disable-cwd-mount",
        dest="mount_cwd",
        action="store_false",
        default=None,
        help="Do not mount the current directory at ~/work",
    )
    p.add_argument("--privileged", action="store_true", default=None, help="Give extended privileges to the container")
    p.add_argument("--sync-zsh-history", default=None, choices=HISTORY_MODES)
    p.add_argument("--config", default=None, help="Path to YAML config (default: ~/.config/tempsystem/config.yaml)")
    p.add_argument("--log", default=None, help="Also write the log to this file")
    p.add_argument("--dry-run", action="store_true", default=None, help="Print commands without running them")
    p.add_argument("-v", "--verbose", action="store_true")
    p.add_argument("command", nargs="*", help="Command to run in the container (default: /usr/bin/zsh)")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    configure_logging(log_path=args.log, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        cfg = load_session_config(args.config).merged(_overrides(args))
        cfg.validate()
    except (OSError, ValueError, RuntimeError) as e:
        p.error(str(e))

    install_interrupt_handlers()
    return run(cfg)


if __name__ == "__main__":
    raise SystemExit(main())
