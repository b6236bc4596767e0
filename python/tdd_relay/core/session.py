"""Relay session state shared by the input loop and the event handler."""
import logging
import threading
from enum import Enum

logger = logging.getLogger("tdd_relay.session")


class Turn(Enum):
    """Party that produced the most recent transcript text."""
    OPERATOR = "operator"
    REMOTE = "remote"


class Phase(Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    RELAYING = "relaying"
    TERMINATING = "terminating"


class Session:
    """
    Single relay session.

    One lock guards turn, phase, active leg and transcript writes. The lock is
    never held across an await or socket I/O. active_leg_id is non-empty
    exactly while the phase is RELAYING.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._active_leg_id = ""
        self._turn = Turn.REMOTE
        self._phase = Phase.IDLE
        self._refresh_needed = False

    @property
    def lock(self) -> threading.Lock:
        return self._lock

    @property
    def active_leg_id(self) -> str:
        with self._lock:
            return self._active_leg_id

    @property
    def phase(self) -> Phase:
        with self._lock:
            return self._phase

    @property
    def turn(self) -> Turn:
        with self._lock:
            return self._turn

    @property
    def refresh_needed(self) -> bool:
        with self._lock:
            return self._refresh_needed

    def begin_selection(self) -> None:
        """Enter SELECTING with a forced first listing."""
        with self._lock:
            self._phase = Phase.SELECTING
            self._active_leg_id = ""
            self._refresh_needed = True
        logger.debug("Phase -> selecting")

    def start_relay(self, leg_id: str) -> None:
        """Enter RELAYING on leg_id; call only after relay-enable succeeded."""
        if not leg_id:
            raise ValueError("leg_id must not be empty")
        with self._lock:
            if self._phase is Phase.TERMINATING:
                raise RuntimeError("Session is terminating")
            self._active_leg_id = leg_id
            self._phase = Phase.RELAYING
            self._turn = Turn.REMOTE
        logger.info(f"Relaying on {leg_id}")

    def end_relay(self) -> None:
        with self._lock:
            if self._phase is Phase.RELAYING:
                self._phase = Phase.IDLE
            self._active_leg_id = ""
        logger.debug("Relay ended")

    def terminate(self) -> None:
        with self._lock:
            self._phase = Phase.TERMINATING
            self._active_leg_id = ""

    def is_relaying_on(self, leg_id: str) -> bool:
        """True if relaying and leg_id is the active leg."""
        with self._lock:
            return self._phase is Phase.RELAYING and leg_id == self._active_leg_id

    def flag_topology_change(self) -> bool:
        """
        Note that the set of legs may have changed.

        Returns:
            False (and does nothing) while relaying.
        """
        with self._lock:
            if self._phase is Phase.RELAYING:
                return False
            self._refresh_needed = True
            return True

    def request_refresh(self) -> None:
        with self._lock:
            self._refresh_needed = True

    def consume_refresh(self) -> bool:
        """Return and clear the refresh flag."""
        with self._lock:
            needed = self._refresh_needed
            self._refresh_needed = False
            return needed

    def peek_leg_id(self) -> str:
        """Active leg id. Caller must hold the lock."""
        return self._active_leg_id

    def swap_turn(self, role: Turn) -> bool:
        """
        Make role the current turn. Caller must hold the lock.

        Returns:
            True if the turn changed.
        """
        if self._turn is role:
            return False
        self._turn = role
        return True
