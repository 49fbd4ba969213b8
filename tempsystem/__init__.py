"""tempsystem: throwaway Arch Linux containers with a ready-to-use zsh.

Core design goals:
- One fresh container per run, removed on exit
- Ordered provisioning steps with explicit failure policy
- Every external command echoed before it runs
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
