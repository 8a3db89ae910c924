#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

"""
Runs one CGI program and wires its standard streams.

The request body is written to stdin and stderr is drained by two
background tasks while the caller reads stdout, so a program that writes
before it has consumed its input never blocks on a full pipe.
"""

import asyncio
import os
from asyncio.subprocess import PIPE

from cgigate.errors import ProcessFailed, SpawnError


class CGIProcess(object):

    def __init__(self, descriptor, environ, cfg, log):
        self.descriptor = descriptor
        self.environ = environ
        self.cfg = cfg
        self.log = log

        self.proc = None
        self.stdout = None
        self.stderr = bytearray()
        self._feeder = None
        self._drainer = None
        self._closed = False

    @property
    def pid(self):
        return self.proc.pid if self.proc is not None else None

    @property
    def returncode(self):
        return self.proc.returncode if self.proc is not None else None

    def make_env(self):
        env = dict(os.environ) if self.cfg.pass_environ else {}
        env.update(self.environ)
        return env

    async def spawn(self, body):
        """Start the program and begin feeding it ``body``.

        ``body`` is any object with an ``async read(size)`` method
        returning b"" at the end.
        """
        argv = self.descriptor.argv
        self.log.debug("Execute %r with arguments %r", argv[0], argv[1:])
        try:
            self.proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=PIPE, stdout=PIPE, stderr=PIPE,
                env=self.make_env(),
                limit=max(self.cfg.limit_header_field_size + 2,
                          self.cfg.chunk_size))
        except OSError as e:
            raise SpawnError(self.descriptor.command_path, e)

        self.stdout = self.proc.stdout
        self._feeder = asyncio.ensure_future(self._feed_stdin(body))
        self._drainer = asyncio.ensure_future(self._drain_stderr())
        return self

    async def _feed_stdin(self, body):
        stdin = self.proc.stdin
        try:
            while True:
                data = await body.read(self.cfg.chunk_size)
                if not data:
                    break
                stdin.write(data)
                await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # programs are free to ignore their input
            self.log.debug("CGI program %r closed its stdin",
                           self.descriptor.command_path)
        finally:
            stdin.close()

    async def _drain_stderr(self):
        stream = self.proc.stderr
        limit = self.cfg.stderr_max_size
        pending = b""
        while True:
            data = await stream.read(self.cfg.chunk_size)
            if not data:
                break

            self.stderr.extend(data)
            if len(self.stderr) > limit:
                del self.stderr[:len(self.stderr) - limit]

            if self.cfg.log_stderr:
                lines = (pending + data).split(b"\n")
                pending = lines.pop()
                for line in lines:
                    self._log_stderr(line)

        if pending and self.cfg.log_stderr:
            self._log_stderr(pending)

    def _log_stderr(self, line):
        self.log.error("CGI error output (%s): %s",
                       self.descriptor.script_name,
                       line.rstrip(b"\r").decode("utf-8", "replace"))

    async def copy_to(self, response):
        """Stream what is left on stdout to ``response``."""
        while True:
            data = await self.stdout.read(self.cfg.chunk_size)
            if not data:
                break
            await response.write(data)

    async def wait(self):
        """Wait for the program to exit.

        Must be called once stdout has been read to the end.

        Raises:
            ProcessFailed: the program exited with a non-zero status
        """
        returncode = await self.proc.wait()
        await self._drainer

        # the rest of the request body is of no use to an exited program
        if not self._feeder.done():
            self._feeder.cancel()
        await asyncio.wait([self._feeder])
        if not self._feeder.cancelled() and self._feeder.exception():
            raise self._feeder.exception()

        if returncode != 0:
            raise ProcessFailed(self.descriptor.command_path, returncode,
                                bytes(self.stderr))
        return returncode

    async def settle(self, timeout):
        """Give the program ``timeout`` seconds to exit and flush stderr.

        Used when its output turned out to be unusable, so that what it
        reported on stderr can still be shown.
        """
        if self.proc is None:
            return
        try:
            await asyncio.wait_for(self.proc.wait(), timeout)
        except asyncio.TimeoutError:
            return
        if self._drainer is not None:
            await asyncio.wait([self._drainer], timeout=timeout)

    async def close(self):
        """Terminate the program if it still runs and release its pipes."""
        if self._closed or self.proc is None:
            return
        self._closed = True

        if self.proc.returncode is None:
            self.log.debug("Terminating CGI program %r (pid: %s)",
                           self.descriptor.command_path, self.proc.pid)
            try:
                self.proc.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(self.proc.wait(), self.cfg.kill_timeout)
            except asyncio.TimeoutError:
                self.log.warning("Killing CGI program %r (pid: %s)",
                                 self.descriptor.command_path, self.proc.pid)
                try:
                    self.proc.kill()
                except ProcessLookupError:
                    pass
                await self.proc.wait()

        tasks = [t for t in (self._feeder, self._drainer) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        if self.proc.stdin is not None:
            self.proc.stdin.close()
