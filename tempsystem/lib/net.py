from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

OMZ_INSTALLER_URL = "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"
FETCH_RETRIES = 10


def fetch_argv(url: str, dest: str, *, retries: int = FETCH_RETRIES) -> list[str]:
    """curl invocation that retries refused connections and fails on HTTP errors."""

    if retries < 0:
        raise ValueError("retries must be >= 0")
    return [
        "curl",
        url,
        "--location",
        "--retry-connrefused",
        "--retry",
        str(retries),
        "--fail",
        "-s",
        "-o",
        dest,
    ]


def git_clone_argv(url: str, dest: str) -> list[str]:
    return ["git", "clone", url, dest]
