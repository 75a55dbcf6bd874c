import asyncio
import collections
import logging

from .errors import Interrupted

log = logging.getLogger(__name__)


def discard(future):
    """
    Done-callback for abandoned work: consume the outcome so nothing is
    reported as never retrieved.
    """
    if not future.cancelled():
        future.exception()


def abandon(task, owned):
    if owned:
        task.cancel()
    task.add_done_callback(discard)


class InterruptChannel:
    """
    Re-armable cancellation signal.

    Every blocking step of the session is raced against the current slot with
    `race()`. Firing fails the current slot and installs a fresh one in the
    same step, so a later fire is observed independently. A fire that nobody
    is waiting on is held until the next waiter picks it up.
    """

    def __init__(self):
        self._slot = None
        self._waiters = 0
        self._handed_out = False
        self._unobserved = collections.deque()

    def _current(self):
        if self._slot is None:
            self._slot = asyncio.get_running_loop().create_future()
            self._handed_out = False
        return self._slot

    def interrupt(self, reason=None):
        if reason is None:
            reason = Interrupted("interrupted")
        slot = self._slot
        self._slot = None
        if slot is not None and (self._waiters or self._handed_out):
            log.debug("interrupt delivered: %r", reason)
            slot.set_exception(reason)
            if not self._waiters:
                slot.add_done_callback(discard)
            return
        log.debug("interrupt held for next waiter: %r", reason)
        if slot is not None:
            slot.set_exception(reason)
            slot.add_done_callback(discard)
        self._unobserved.append(reason)

    def pending(self):
        return len(self._unobserved)

    def wait(self):
        """
        Future that only ever fails, when the channel fires. Meant as one arm
        of a race, never awaited alone. The caller holding it observes the
        next fire; later waiters get a fresh slot.
        """
        if self._unobserved:
            fired = asyncio.get_running_loop().create_future()
            fired.set_exception(self._unobserved.popleft())
            return fired
        slot = self._current()
        self._handed_out = True
        return slot

    async def race(self, aw):
        """
        Wait for aw or the next fire, whichever comes first.

        When the fire wins, aw is abandoned: a coroutine is cancelled (the
        wrapper is ours), a future or task handed in keeps running and its
        outcome is discarded.
        """
        owned = asyncio.iscoroutine(aw)
        task = asyncio.ensure_future(aw)
        if self._unobserved:
            # fired before this operation started waiting
            abandon(task, owned)
            raise self._unobserved.popleft()
        slot = self._current()
        self._waiters += 1
        try:
            await asyncio.wait((task, slot), return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            abandon(task, owned)
            raise
        finally:
            self._waiters -= 1

        if task.done():
            if slot.done():
                # fired in the same iteration the operation finished
                self._unobserved.append(slot.exception())
            return task.result()

        abandon(task, owned)
        return slot.result()
