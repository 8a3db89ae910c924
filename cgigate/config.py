#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

import copy
import textwrap

from cgigate import SERVER_SOFTWARE

KNOWN_SETTINGS = []


def make_settings(ignore=None):
    settings = {}
    ignore = ignore or ()
    for s in KNOWN_SETTINGS:
        setting = s()
        if setting.name in ignore:
            continue
        settings[setting.name] = setting.copy()
    return settings


class Config(object):

    def __init__(self, **kwargs):
        self.settings = make_settings()
        for name, value in kwargs.items():
            self.set(name, value)

    def __str__(self):
        lines = []
        kmax = max(len(k) for k in self.settings)
        for k in sorted(self.settings):
            v = self.settings[k].value
            lines.append("{k:{kmax}} = {v}".format(k=k, v=v, kmax=kmax))
        return "\n".join(lines)

    def __getattr__(self, name):
        if name not in self.settings:
            raise AttributeError("No configuration setting for: %s" % name)
        return self.settings[name].get()

    def __setattr__(self, name, value):
        if name != "settings" and name in self.settings:
            raise AttributeError("Invalid access!")
        super().__setattr__(name, value)

    def set(self, name, value):
        if name not in self.settings:
            raise AttributeError("No configuration setting for: %s" % name)
        self.settings[name].set(value)


class SettingMeta(type):
    def __new__(cls, name, bases, attrs):
        super_new = super().__new__
        parents = [b for b in bases if isinstance(b, SettingMeta)]
        if not parents:
            return super_new(cls, name, bases, attrs)

        attrs["order"] = len(KNOWN_SETTINGS)
        attrs["validator"] = staticmethod(attrs["validator"])

        new_class = super_new(cls, name, bases, attrs)
        new_class.fmt_desc(attrs.get("desc", ""))
        KNOWN_SETTINGS.append(new_class)
        return new_class

    def fmt_desc(cls, desc):
        desc = textwrap.dedent(desc).strip()
        setattr(cls, "desc", desc)
        setattr(cls, "short", desc.splitlines()[0])


class Setting(object):
    name = None
    value = None
    section = None
    validator = None
    default = None
    short = None
    desc = None

    def __init__(self):
        if self.default is not None:
            self.set(self.default)

    def copy(self):
        return copy.copy(self)

    def get(self):
        return self.value

    def set(self, val):
        if not callable(self.validator):
            raise TypeError('Invalid validator: %s' % self.name)
        self.value = self.validator(val)

    def __lt__(self, other):
        return (self.section == other.section and
                self.order < other.order)

    def __repr__(self):
        return "<%s.%s object at %x with value %r>" % (
            self.__class__.__module__,
            self.__class__.__name__,
            id(self),
            self.value,
        )


Setting = SettingMeta('Setting', (Setting,), {})


def validate_bool(val):
    if val is None:
        return

    if isinstance(val, bool):
        return val
    if not isinstance(val, str):
        raise TypeError("Invalid type for casting: %s" % val)
    if val.lower().strip() == "true":
        return True
    elif val.lower().strip() == "false":
        return False
    else:
        raise ValueError("Invalid boolean: %s" % val)


def validate_pos_int(val):
    if not isinstance(val, int):
        val = int(val, 0)
    else:
        # Booleans are ints!
        val = int(val)
    if val < 0:
        raise ValueError("Value must be positive: %s" % val)
    return val


def validate_pos_nonzero_int(val):
    val = validate_pos_int(val)
    if val == 0:
        raise ValueError("Value must be greater than zero: %s" % val)
    return val


def validate_pos_float(val):
    if isinstance(val, bool):
        raise TypeError("Not a number: %s" % val)
    val = float(val)
    if val < 0:
        raise ValueError("Value must be positive: %s" % val)
    return val


def validate_string(val):
    if val is None:
        return None
    if not isinstance(val, str):
        raise TypeError("Not a string: %s" % val)
    return val.strip()


class Timeout(Setting):
    name = "timeout"
    section = "Processing"
    validator = validate_pos_float
    default = 3.0
    desc = """\
        Seconds a single CGI request may take, program exit included.

        The budget covers resolving the script, feeding the request body,
        reading the response and waiting for the program to exit. When it
        runs out the program is terminated and the request fails.
        A value of 0 disables the limit.
        """


class KillTimeout(Setting):
    name = "kill_timeout"
    section = "Processing"
    validator = validate_pos_float
    default = 1.0
    desc = """\
        Seconds to wait after SIGTERM before a CGI program is killed.
        """


class ChunkSize(Setting):
    name = "chunk_size"
    section = "Processing"
    validator = validate_pos_nonzero_int
    default = 8192
    desc = """\
        Size of the chunks copied between the client and the CGI program.
        """


class PassEnviron(Setting):
    name = "pass_environ"
    section = "Processing"
    validator = validate_bool
    default = True
    desc = """\
        Let CGI programs inherit the environment of the gateway process.

        The CGI variables are always applied on top of the inherited ones.
        Disable it to run programs with the CGI variables only, in which
        case ``PATH`` is unset and commands must be given as paths.
        """


class ServerSoftware(Setting):
    name = "server_software"
    section = "Processing"
    validator = validate_string
    default = SERVER_SOFTWARE
    desc = """\
        Value passed to CGI programs as ``SERVER_SOFTWARE``.
        """


class LimitHeaderFields(Setting):
    name = "limit_header_fields"
    section = "Security"
    validator = validate_pos_int
    default = 100
    desc = """\
        Limit the number of header lines a CGI program may send.

        This parameter is used to limit the number of headers in a
        response to prevent a misbehaving program from exhausting memory.
        """


class LimitHeaderFieldSize(Setting):
    name = "limit_header_field_size"
    section = "Security"
    validator = validate_pos_int
    default = 8190
    desc = """\
        Limit the allowed size of a CGI header line.

        Value is a positive number in bytes. Longer lines fail the request.
        """


class LogStderr(Setting):
    name = "log_stderr"
    section = "Logging"
    validator = validate_bool
    default = False
    desc = """\
        Log every line CGI programs write to stderr on the error log.
        """


class StderrMaxSize(Setting):
    name = "stderr_max_size"
    section = "Logging"
    validator = validate_pos_int
    default = 65536
    desc = """\
        Number of trailing stderr bytes kept per request.

        The kept output is shown on the error page of a program that
        exits with a non-zero status.
        """


class Debug(Setting):
    name = "debug"
    section = "Debugging"
    validator = validate_bool
    default = False
    desc = """\
        Include the Python traceback on 500 error pages.
        """


class AccessLog(Setting):
    name = "accesslog"
    section = "Logging"
    validator = validate_string
    default = None
    desc = """\
        The Access log file to write to.

        ``'-'`` means log to stderr. ``None`` disables access logging.
        """


class AccessLogFormat(Setting):
    name = "access_log_format"
    section = "Logging"
    validator = validate_string
    default = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s"'
    desc = """\
        The access log format.

        ===========  ===========
        Identifier   Description
        ===========  ===========
        h            remote address
        l            ``'-'``
        u            user name
        t            date of the request
        r            status line (e.g. ``GET / HTTP/1.1``)
        m            request method
        U            URL path without query string
        q            query string
        H            protocol
        s            status
        B            response length
        b            response length or ``'-'`` (CLF format)
        f            referer
        a            user agent
        T            request time in seconds
        M            request time in milliseconds
        D            request time in microseconds
        L            request time in decimal seconds
        p            process ID
        S            CGI script name
        {header}i    request header
        {header}o    response header
        {variable}e  CGI environment variable
        ===========  ===========
        """


class ErrorLog(Setting):
    name = "errorlog"
    section = "Logging"
    validator = validate_string
    default = '-'
    desc = """\
        The Error log file to write to.

        Using ``'-'`` for FILE makes the gateway log to stderr.
        """


class Loglevel(Setting):
    name = "loglevel"
    section = "Logging"
    validator = validate_string
    default = "info"
    desc = """\
        The granularity of Error log outputs.

        Valid level names are:

        * ``'debug'``
        * ``'info'``
        * ``'warning'``
        * ``'error'``
        * ``'critical'``
        """
