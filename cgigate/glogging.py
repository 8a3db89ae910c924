#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

import logging
logging.Logger.manager.emittedNoHandlerWarning = 1  # noqa
import os
import time

from cgigate import util


class SafeAtoms(dict):

    def __init__(self, atoms):
        dict.__init__(self)
        for key, value in atoms.items():
            if isinstance(value, str):
                self[key] = value.replace('"', '\\"')
            else:
                self[key] = value

    def __getitem__(self, k):
        if k.startswith("{"):
            kl = k.lower()
            if kl in self:
                return super().__getitem__(kl)
            else:
                return "-"
        if k in self:
            return super().__getitem__(k)
        else:
            return '-'


class Logger(object):

    LOG_LEVELS = {
        "critical": logging.CRITICAL,
        "error": logging.ERROR,
        "warning": logging.WARNING,
        "info": logging.INFO,
        "debug": logging.DEBUG
    }
    loglevel = logging.INFO

    error_fmt = r"%(asctime)s [%(process)d] [%(levelname)s] %(message)s"
    datefmt = r"[%Y-%m-%d %H:%M:%S %z]"

    access_fmt = "%(message)s"

    def __init__(self, cfg):
        self.error_log = logging.getLogger("cgigate.error")
        self.error_log.propagate = False
        self.access_log = logging.getLogger("cgigate.access")
        self.access_log.propagate = False
        self.cfg = cfg
        self.setup(cfg)

    def setup(self, cfg):
        self.loglevel = self.LOG_LEVELS.get(cfg.loglevel.lower(), logging.INFO)
        self.error_log.setLevel(self.loglevel)
        self.access_log.setLevel(logging.INFO)

        # set cgigate.error handler
        self._set_handler(
            self.error_log, cfg.errorlog,
            logging.Formatter(self.error_fmt, self.datefmt))

        # set cgigate.access handler, None removes it
        self._set_handler(
            self.access_log, cfg.accesslog,
            fmt=logging.Formatter(self.access_fmt))

    def critical(self, msg, *args, **kwargs):
        self.error_log.critical(msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        self.error_log.error(msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        self.error_log.warning(msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        self.error_log.info(msg, *args, **kwargs)

    def debug(self, msg, *args, **kwargs):
        self.error_log.debug(msg, *args, **kwargs)

    def exception(self, msg, *args, **kwargs):
        self.error_log.exception(msg, *args, **kwargs)

    def log(self, lvl, msg, *args, **kwargs):
        if isinstance(lvl, str):
            lvl = self.LOG_LEVELS.get(lvl.lower(), logging.INFO)
        self.error_log.log(lvl, msg, *args, **kwargs)

    def atoms(self, resp, req, environ, request_time):
        """ Gets atoms for log formatting.
        """
        status = resp.status
        if isinstance(status, int):
            status = str(status)
        target = req.path
        if req.query:
            target = "%s?%s" % (req.path, req.query)
        protocol = "HTTP/%s" % req.version
        atoms = {
            'h': req.remote_addr or '-',
            'l': '-',
            'u': req.remote_user or '-',
            't': self.now(),
            'r': "%s %s %s" % (req.method, target, protocol),
            's': status,
            'm': req.method,
            'U': req.path,
            'q': req.query,
            'H': protocol,
            'b': str(resp.bytes_sent) if resp.bytes_sent else '-',
            'B': resp.bytes_sent,
            'f': req.get_header('referer') or '-',
            'a': req.get_header('user-agent') or '-',
            'T': request_time.seconds,
            'D': (request_time.seconds * 1000000) + request_time.microseconds,
            'M': (request_time.seconds * 1000) + int(request_time.microseconds / 1000),
            'L': "%d.%06d" % (request_time.seconds, request_time.microseconds),
            'p': "<%s>" % os.getpid(),
            'S': environ.get('SCRIPT_NAME', '-'),
        }

        # add request headers
        atoms.update({"{%s}i" % k.lower(): v for k, v in req.headers})

        # add response headers
        atoms.update({"{%s}o" % k.lower(): v for k, v in resp.headers})

        # add CGI variables
        atoms.update({"{%s}e" % k.lower(): v for k, v in environ.items()})

        return atoms

    def access(self, resp, req, environ, request_time):
        """ See http://httpd.apache.org/docs/2.0/logs.html#combined
        for format details
        """

        if not self.cfg.accesslog:
            return

        # wrap atoms:
        # - make sure atoms will be test case insensitively
        # - if atom doesn't exist replace it by '-'
        safe_atoms = SafeAtoms(self.atoms(resp, req, environ, request_time))

        try:
            self.access_log.info(self.cfg.access_log_format, safe_atoms)
        except Exception:
            self.exception('Failed to format access log line')

    def now(self):
        """ return date in Apache Common Log Format """
        return time.strftime('[%d/%b/%Y:%H:%M:%S %z]')

    def _get_cgigate_handler(self, log):
        for h in log.handlers:
            if getattr(h, "_cgigate", False):
                return h

    def _set_handler(self, log, output, fmt):
        # remove previous cgigate log handler
        h = self._get_cgigate_handler(log)
        if h:
            log.handlers.remove(h)

        if output is not None:
            if output == "-":
                h = logging.StreamHandler()
            else:
                util.check_is_writeable(output)
                h = logging.FileHandler(output)

            h.setFormatter(fmt)
            h._cgigate = True
            log.addHandler(h)
