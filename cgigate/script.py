#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

from collections import namedtuple
from types import MappingProxyType


_Descriptor = namedtuple(
    "_Descriptor",
    ["script_name", "path_info", "command_path", "command_args",
     "environment_update"])


class ExecutionDescriptor(_Descriptor):
    """The program a request resolves to.

    ``script_name`` and ``path_info`` are handed to the program as
    ``SCRIPT_NAME`` and ``PATH_INFO``. ``command_path`` is executed with
    ``command_args`` as literal arguments, no shell is involved.
    ``environment_update`` entries are added to the environment after all
    the CGI variables and may replace any of them.
    """

    __slots__ = ()

    def __new__(cls, script_name, path_info, command_path, command_args=(),
                environment_update=None):
        if isinstance(command_args, str):
            raise TypeError("command_args must be a sequence of strings")
        update = dict(environment_update or {})
        for key, value in update.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise TypeError("environment_update must map str to str")
        return super().__new__(
            cls, script_name, path_info, str(command_path),
            tuple(command_args), MappingProxyType(update))

    @property
    def argv(self):
        return [self.command_path] + list(self.command_args)
