"""
Backend Interface
*****************

The :class:`Backend` is the class all of the ways of reaching the wrapped library subclass.
A :class:`~hwiclient.client.HWIClient` only ever talks to its backend through these methods,
so an alternate backend can be substituted without changing any call site.
"""

from typing import Any, Optional

from ..common import Chain
from ..errors import UnsupportedCommandError
from ..types import Binding, Request


class Backend(object):
    """
    Abstract access to HWI.

    Backends return raw values in the shapes ``hwilib.commands`` returns them
    (dictionaries and lists of strings, numbers and booleans), or an error payload ``{"error": <msg>, "code": <code>}``.
    Decoding and validation is done by :mod:`~hwiclient.marshal`.
    Backends are always called with the invocation lock held.
    """

    name = "base"

    def enumerate(self, password: str = "", chain: Chain = Chain.MAIN, expert: bool = False) -> Any:
        """
        List the devices HWI can see.

        :param password: The password to use for devices which take passwords from the host
        :param chain: The chain the devices are enumerated for
        :param expert: Whether to enumerate in expert mode
        :return: A list of device dictionaries as returned by ``hwilib.commands.enumerate``
        """
        raise NotImplementedError("The Backend base class does not implement this method")

    def invoke(self, binding: Optional[Binding], request: Request) -> Any:
        """
        Run one command.

        :param binding: The device the command is for. ``None`` for commands that do not need a device, such as ``version``.
        :param request: The command and its encoded arguments
        :return: The raw result
        """
        raise NotImplementedError("The Backend base class does not implement this method")

    def release(self, binding: Binding) -> None:
        """
        Free anything held open for ``binding``. Called when a client is closed.
        """
        pass

    def set_log_level(self, level: int) -> None:
        """
        Set the logging level of the wrapped library.

        :param level: A :mod:`logging` level such as ``logging.DEBUG``
        """
        raise UnsupportedCommandError(f"The {self.name} backend cannot set the log level")

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"
