"""Session-scoped "already reconciled" guards."""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class SyncGuard:
    """Whether a collection has already been reconciled this session."""

    reconciled_this_session: bool = False

    def reset(self) -> None:
        self.reconciled_this_session = False


class SessionGuards:
    """One guard per collection name, shared by every coordinator of a session."""

    def __init__(self):
        self._guards: dict[str, SyncGuard] = {}

    def get(self, collection: str) -> SyncGuard:
        if collection not in self._guards:
            self._guards[collection] = SyncGuard()
        return self._guards[collection]

    def reset_all(self) -> None:
        for guard in self._guards.values():
            guard.reset()

    def handle_page_load(self, reloaded: bool) -> bool:
        """Apply the reset policy for a new page load.

        Only an explicit reload clears the guards; plain navigation keeps
        them so each collection is reconciled once per session.

        Returns:
            True if the guards were reset.
        """
        if not reloaded:
            return False
        self.reset_all()
        logger.debug("Page reloaded, sync guards reset")
        return True
