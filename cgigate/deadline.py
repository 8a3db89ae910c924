#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

import asyncio

from cgigate.errors import ClientDisconnected, GatewayTimeout


class Deadline(object):
    """Processing budget of one request.

    Combines a timeout with the event the host sets when the client goes
    away. Work run through :meth:`run` is cancelled as soon as either
    fires, which lets the code below it release its resources in
    ``finally`` blocks.
    """

    def __init__(self, timeout, aborted=None):
        self.timeout = timeout
        self.aborted = aborted if aborted is not None else asyncio.Event()
        loop = asyncio.get_running_loop()
        self.expires = loop.time() + timeout if timeout else None

    def remaining(self):
        if self.expires is None:
            return None
        return max(self.expires - asyncio.get_running_loop().time(), 0)

    @property
    def expired(self):
        return self.expires is not None and self.remaining() <= 0

    async def run(self, coro):
        """Run ``coro`` within the budget and return its result.

        Raises:
            GatewayTimeout: the budget ran out
            ClientDisconnected: the client went away
        """
        if self.aborted.is_set():
            coro.close()
            raise ClientDisconnected()

        task = asyncio.ensure_future(coro)
        abort = asyncio.ensure_future(self.aborted.wait())
        try:
            done, _ = await asyncio.wait(
                {task, abort},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            await self._reap(task)
            raise
        finally:
            abort.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await self._reap(task)
        if self.aborted.is_set():
            raise ClientDisconnected()
        raise GatewayTimeout(self.timeout)

    async def _reap(self, task):
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            # superseded by the timeout or the abort
            pass
