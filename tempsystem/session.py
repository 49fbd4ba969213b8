from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


class SessionState(str, enum.Enum):
    NEW = "new"
    CREATED = "created"
    PROVISIONING = "provisioning"
    ATTACHED = "attached"
    REMOVED = "removed"


# Allowed transitions; anything else is a programming error.
_TRANSITIONS = {
    SessionState.NEW: {SessionState.CREATED, SessionState.REMOVED},
    SessionState.CREATED: {SessionState.PROVISIONING, SessionState.REMOVED},
    SessionState.PROVISIONING: {SessionState.ATTACHED, SessionState.REMOVED},
    SessionState.ATTACHED: {SessionState.REMOVED},
    SessionState.REMOVED: set(),
}


@dataclass
class Session:
    """One provisioning run and the single container it owns."""

    image: str
    extra_packages: Tuple[str, ...] = ()
    container_id: Optional[str] = None
    # Lets teardown find the container when create was cut short before printing the id.
    name: str = field(default_factory=lambda: f"tempsystem-{uuid.uuid4().hex[:12]}")
    state: SessionState = SessionState.NEW
    history: List[SessionState] = field(default_factory=lambda: [SessionState.NEW])

    def __post_init__(self) -> None:
        if not str(self.image or "").strip():
            raise ValueError("image must be a non-empty string")

    def transition(self, new: SessionState) -> None:
        if new not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid session transition {self.state.value} -> {new.value}")
        self.state = new
        self.history.append(new)

    @property
    def removed(self) -> bool:
        return self.state is SessionState.REMOVED
