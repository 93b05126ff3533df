"""
In-process Backend
******************

Calls ``hwilib.commands`` directly. ``hwilib`` is imported on first use, so this module can be imported
(and other backends used) without HWI installed. Install it with ``pip install hwi-client[hwilib]``.

Each bound device gets one ``hwilib`` client, opened by the first command sent to it and kept
until the :class:`~hwiclient.client.HWIClient` is closed.
"""

import importlib
import logging

from types import ModuleType
from typing import (
    Any,
    Callable,
    Dict,
    Mapping,
    Optional,
)

from .base import Backend
from ..common import AddressType, Chain
from ..errors import (
    DeviceNotFoundError,
    DeviceConnError,
    ErrorCategory,
    UnknownError,
    UnsupportedCommandError,
    lift_exception,
)
from ..marshal import invocation_lock
from ..types import Binding, Request


LOG = logging.getLogger(__name__)


class HWILib(object):
    """
    Convenience class containing the ``hwilib`` modules this backend uses
    """

    def __init__(self, commands: ModuleType, common: ModuleType, version: str) -> None:
        """
        :param commands: ``hwilib.commands`` or an object with the same functions
        :param common: ``hwilib.common`` or an object with its ``Chain`` and ``AddressType`` enums
        :param version: The version of HWI
        """
        self.commands = commands
        self.common = common
        self.version = version

    @classmethod
    def load(cls) -> 'HWILib':
        """
        Import ``hwilib``.

        :raises: UnknownError: if ``hwilib`` is not installed or fails to import
        """
        try:
            hwilib = importlib.import_module("hwilib")
            commands = importlib.import_module("hwilib.commands")
            common = importlib.import_module("hwilib.common")
        except ImportError as e:
            raise UnknownError(f"Could not import hwilib ({e}). Install it with 'pip install hwi-client[hwilib]'")
        return cls(commands, common, getattr(hwilib, "__version__", "0.0.0"))

    def chain(self, chain: Chain) -> Any:
        return self.common.Chain[chain.name]

    def addr_type(self, addr_type: AddressType) -> Any:
        return self.common.AddressType[addr_type.name]


# Command handlers. Each takes the library, the open hwilib client and the encoded request arguments.

def _getmasterxpub(lib: HWILib, client: Any, args: Mapping[str, Any]) -> Any:
    return lib.commands.getmasterxpub(client, addrtype=lib.addr_type(args["addr_type"]), account=args["account"])

def _signtx(lib: HWILib, client: Any, args: Mapping[str, Any]) -> Any:
    return lib.commands.signtx(client, args["psbt"])

def _getxpub(lib: HWILib, client: Any, args: Mapping[str, Any]) -> Any:
    return lib.commands.getxpub(client, args["path"], args["expert"])

def _signmessage(lib: HWILib, client: Any, args: Mapping[str, Any]) -> Any:
    return lib.commands.signmessage(client, args["message"], args["path"])

def _getkeypool(lib: HWILib, client: Any, args: Mapping[str, Any]) -> Any:
    return lib.commands.getkeypool(
        client,
        args["path"],
        args["start"],
        args["end"],
        internal=args["internal"],
        keypool=args["keypool"],
        account=args["account"],
        addr_type=lib.addr_type(args["addr_type"]),
        addr_all=args["addr_all"],
    )

def _getdescriptors(lib: HWILib, client: Any, args: Mapping[str, Any]) -> Any:
    return lib.commands.getdescriptors(client, account=args["account"])

def _displayaddress(lib: HWILib, client: Any, args: Mapping[str, Any]) -> Any:
    if args.get("desc") is not None:
        return lib.commands.displayaddress(client, desc=args["desc"])
    return lib.commands.displayaddress(client, path=args["path"], addr_type=lib.addr_type(args["addr_type"]))

def _setup(lib: HWILib, client: Any, args: Mapping[str, Any]) -> Any:
    return lib.commands.setup_device(client, label=args["label"], backup_passphrase=args["backup_passphrase"])

def _wipe(lib: HWILib, client: Any, args: Mapping[str, Any]) -> Any:
    return lib.commands.wipe_device(client)

def _restore(lib: HWILib, client: Any, args: Mapping[str, Any]) -> Any:
    return lib.commands.restore_device(client, label=args["label"], word_count=args["word_count"])

def _backup(lib: HWILib, client: Any, args: Mapping[str, Any]) -> Any:
    return lib.commands.backup_device(client, label=args["label"], backup_passphrase=args["backup_passphrase"])

def _promptpin(lib: HWILib, client: Any, args: Mapping[str, Any]) -> Any:
    return lib.commands.prompt_pin(client)

def _sendpin(lib: HWILib, client: Any, args: Mapping[str, Any]) -> Any:
    return lib.commands.send_pin(client, args["pin"])

def _togglepassphrase(lib: HWILib, client: Any, args: Mapping[str, Any]) -> Any:
    return lib.commands.toggle_passphrase(client)


HANDLERS: Dict[str, Callable[[HWILib, Any, Mapping[str, Any]], Any]] = {
    "getmasterxpub": _getmasterxpub,
    "signtx": _signtx,
    "getxpub": _getxpub,
    "signmessage": _signmessage,
    "getkeypool": _getkeypool,
    "getdescriptors": _getdescriptors,
    "displayaddress": _displayaddress,
    "setup": _setup,
    "wipe": _wipe,
    "restore": _restore,
    "backup": _backup,
    "promptpin": _promptpin,
    "sendpin": _sendpin,
    "togglepassphrase": _togglepassphrase,
}


class PythonBackend(Backend):
    """
    Backend calling ``hwilib`` in this interpreter
    """

    name = "python"

    def __init__(self, lib: Optional[HWILib] = None) -> None:
        """
        :param lib: The library to call. Loaded with :meth:`HWILib.load` on first use if not given.
        """
        self._lib = lib
        # {binding: open hwilib client}
        self._clients: Dict[Binding, Any] = {}

    @property
    def lib(self) -> HWILib:
        with invocation_lock():
            if self._lib is None:
                LOG.debug("Loading hwilib")
                self._lib = HWILib.load()
            return self._lib

    def enumerate(self, password: str = "", chain: Chain = Chain.MAIN, expert: bool = False) -> Any:
        return self.lib.commands.enumerate(password)

    def _open(self, binding: Binding) -> Any:
        client = self._clients.get(binding)
        if client is not None:
            return client

        lib = self.lib
        chain = lib.chain(binding.chain)
        if binding.path:
            if not binding.device_type:
                raise DeviceNotFoundError("A device type is needed to open a device by path")
            client = lib.commands.get_client(binding.device_type, binding.path, binding.password, binding.expert, chain)
        else:
            client = lib.commands.find_device(binding.password, binding.device_type, binding.fingerprint, binding.expert, chain)
            if client is None:
                raise DeviceNotFoundError("Could not find device with specified fingerprint or type")
        if client is None:
            raise DeviceConnError("Unable to communicate with device")
        self._clients[binding] = client
        return client

    def _discard(self, binding: Binding) -> None:
        client = self._clients.pop(binding, None)
        if client is None:
            return
        try:
            client.close()
        except Exception as e:
            LOG.debug("Error closing hwilib client for %s: %s", binding.path, e)

    def invoke(self, binding: Optional[Binding], request: Request) -> Any:
        lib = self.lib
        if request.command == "version":
            return lib.version
        if request.command == "installudevrules":
            return lib.commands.install_udev_rules(request["source"], request["location"])

        handler = HANDLERS.get(request.command)
        if handler is None:
            raise UnsupportedCommandError(f"Unknown command {request.command}")
        if binding is None:
            raise DeviceNotFoundError(f"{request.command} needs a device")

        client = self._open(binding)
        try:
            return handler(lib, client, request.args)
        except Exception as e:
            if isinstance(e, OSError) or lift_exception(e).category is ErrorCategory.DEVICE_CONN_ERROR:
                # The transport is gone. Reopen on the next command.
                self._discard(binding)
            raise

    def release(self, binding: Binding) -> None:
        with invocation_lock():
            self._discard(binding)

    def set_log_level(self, level: int) -> None:
        logging.basicConfig(level=level)
        logging.getLogger().setLevel(level)
