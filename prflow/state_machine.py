"""State machine for the per-repository PR creation attempt.

Each (workspace, repo) attempt starts ``unattempted`` and moves through
explicit calls made by the orchestrator:

    unattempted -> attached                     (a PR was already recorded)
    unattempted -> target_missing               (target branch not on the remote)
    unattempted -> pushed -> created            (normal path)
    unattempted | pushed -> failed

``attached``, ``target_missing``, ``created`` and ``failed`` are terminal.
"""

import logging
from typing import Optional

from transitions import Machine, MachineError

logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, source: str, trigger: str, message: Optional[str] = None) -> None:
        self.source = source
        self.trigger = trigger
        if message:
            super().__init__(message)
        else:
            super().__init__(f"Cannot '{trigger}' from state '{source}'")


class PrLifecycle:
    """Tracks one PR attempt.

    Example usage:
        >>> lc = PrLifecycle("repo-1")
        >>> lc.fire("push")
        >>> lc.fire("create")
        >>> lc.current_state
        'created'
    """

    STATES = [
        "unattempted",
        "attached",
        "target_missing",
        "pushed",
        "created",
        "failed",
    ]

    TERMINAL_STATES = frozenset({"attached", "target_missing", "created", "failed"})

    TRANSITIONS = [
        {"trigger": "attach", "source": "unattempted", "dest": "attached"},
        {"trigger": "target_missing", "source": "unattempted", "dest": "target_missing"},
        {"trigger": "push", "source": "unattempted", "dest": "pushed"},
        {"trigger": "create", "source": "pushed", "dest": "created"},
        {"trigger": "fail", "source": ["unattempted", "pushed"], "dest": "failed"},
    ]

    def __init__(self, label: str = "", initial_state: str = "unattempted") -> None:
        """Initialize the lifecycle.

        Args:
            label: Identifies the attempt in log messages (usually the repo name)
            initial_state: Starting state
        """
        self.label = label
        self.machine = Machine(
            model=self,
            states=self.STATES,
            transitions=self.TRANSITIONS,
            initial=initial_state,
            auto_transitions=False,
            send_event=False,
        )

    @property
    def current_state(self) -> str:
        return str(self.state)

    def is_terminal(self) -> bool:
        return self.current_state in self.TERMINAL_STATES

    def fire(self, trigger: str) -> None:
        """Apply a transition.

        Raises:
            InvalidTransitionError: If ``trigger`` is not valid from the current state
        """
        source = self.current_state
        try:
            self.trigger(trigger)
        except (AttributeError, MachineError) as e:
            raise InvalidTransitionError(source, trigger) from e
        logger.debug(f"PR attempt {self.label}: {source} -> {self.current_state}")
