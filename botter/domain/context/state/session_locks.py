from typing import Dict, AsyncIterator
import asyncio
from contextlib import asynccontextmanager


class _SessionLock:
    def __init__(self):
        self.lock = asyncio.Lock()
        self.holders = 0


class SessionLockManager:
    """Serializes turns per session while letting distinct sessions run in parallel"""

    def __init__(self):
        # Mutated only between awaits, so the event loop already serializes access
        self.locks: Dict[str, _SessionLock] = {}

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        """Hold the session's lock; it is discarded once no turn holds or awaits it"""

        entry = self.locks.get(session_id)
        if entry is None:
            entry = self.locks[session_id] = _SessionLock()
        entry.holders += 1

        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                self.locks.pop(session_id, None)

    def active_sessions(self) -> int:
        return len(self.locks)
