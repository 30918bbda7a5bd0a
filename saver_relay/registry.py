import logging
from typing import TYPE_CHECKING, Dict, Optional

from .messages import CLOSE_REPLACED
from .roles import Role

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    At most one live session per role.

    Registering over an occupied slot starts closing the previous holder and
    unbinds it before the new session is bound. Nothing here waits on the
    old holder's close handshake, so a half-dead peer cannot stall the new one. unbind() only clears a slot that still holds the
    given session, so a late close from a replaced connection cannot evict
    its successor.
    """

    def __init__(self):
        self._slots: Dict[Role, Optional["Session"]] = {role: None for role in Role}

    def register(self, role, session: "Session") -> bool:
        role = Role.parse(role)
        if session.closed or session.closing:
            return False

        current = self._slots[role]
        if current is not None and current is not session:
            logger.info(f"Replacing existing {role} connection")
            current.evict(CLOSE_REPLACED, f"Replaced by a newer {role} connection")
            self.unbind(current)

        self._slots[role] = session
        session.role = role
        return True

    def lookup(self, role) -> Optional["Session"]:
        return self._slots.get(Role.parse(role))

    def unbind(self, session: "Session") -> bool:
        role = session.role
        if role is None or self._slots.get(role) is not session:
            return False
        self._slots[role] = None
        logger.debug(f"{role} slot cleared")
        return True

    def snapshot(self) -> Dict[str, bool]:
        return {role.value: holder is not None for role, holder in self._slots.items()}
