"""
Command Line Backend
********************

Runs the ``hwi`` executable (a release binary or the script installed with the ``hwi`` package)
and parses the JSON it prints. Nothing is held open between commands.

How the process is run is itself pluggable: anything implementing :class:`BinaryExecutor` can be given
to :class:`BinaryBackend`, e.g. to run ``hwi`` inside a container or to replay recorded output in tests.
"""

import json
import logging
import subprocess

from typing import (
    Any,
    List,
    Optional,
)
from typing_extensions import Protocol

from .base import Backend
from ..common import Chain
from ..errors import (
    DeviceNotFoundError,
    UnknownError,
    UnsupportedCommandError,
)
from ..types import Binding, Request


LOG = logging.getLogger(__name__)

_SECRET_FLAGS = ("--password", "--backup_passphrase")


class BinaryExecutor(Protocol):
    def execute_command(self, args: List[str]) -> str:
        """
        Run ``hwi`` with ``args`` and return what it printed to stdout
        """
        ...


class SubprocessExecutor(object):
    """
    Runs ``hwi`` as a child process
    """

    def __init__(self, binary: str = "hwi") -> None:
        """
        :param binary: The path to the ``hwi`` executable, or its name if it is on ``PATH``
        """
        self.binary = binary

    def execute_command(self, args: List[str]) -> str:
        try:
            proc = subprocess.run([self.binary] + args, stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=False)
        except OSError as e:
            raise UnknownError(f"Could not run {self.binary}: {e}")
        stdout = proc.stdout.decode("utf-8", errors="replace")
        if not stdout.strip():
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            raise UnknownError(stderr or f"{self.binary} exited with status {proc.returncode} and no output")
        return stdout


def redact(args: List[str]) -> List[str]:
    """
    Copy of ``args`` with the values of password flags replaced, for logging
    """
    out = list(args)
    for i, a in enumerate(out[:-1]):
        if a in _SECRET_FLAGS:
            out[i + 1] = "***"
    return out


def global_args(binding: Optional[Binding], chain: Chain, expert: bool, password: str, interactive: bool = False) -> List[str]:
    """
    The options that go before the subcommand: device selection, password, chain and modes
    """
    args: List[str] = []
    if binding is not None:
        if binding.device_type and binding.path:
            args += ["--device-type", binding.device_type, "--device-path", binding.path]
        elif binding.fingerprint:
            args += ["--fingerprint", binding.fingerprint]
        elif binding.device_type:
            args += ["--device-type", binding.device_type]
        else:
            raise DeviceNotFoundError("A device type, path or fingerprint is needed")
    if password:
        args += ["--password", password]
    args += ["--chain", str(chain)]
    if expert:
        args.append("--expert")
    if interactive:
        args.append("--interactive")
    return args


def command_args(request: Request) -> List[str]:
    """
    The subcommand and its arguments for ``request``, following the grammar of ``hwi --help``
    """
    a = request.args
    command = request.command
    if command == "getmasterxpub":
        return ["getmasterxpub", "--addr-type", str(a["addr_type"]), "--account", str(a["account"])]
    elif command == "signtx":
        return ["signtx", a["psbt"]]
    elif command == "getxpub":
        return ["getxpub", a["path"]]
    elif command == "signmessage":
        args = ["signmessage"]
        if a["message"].startswith("-"):
            # Keep argparse from reading the message as an option
            args.append("--")
        return args + [a["message"], a["path"]]
    elif command == "getkeypool":
        args = ["getkeypool", "--keypool" if a["keypool"] else "--nokeypool"]
        if a["internal"]:
            args.append("--internal")
        if a["addr_all"]:
            args.append("--all")
        else:
            args += ["--addr-type", str(a["addr_type"])]
        args += ["--account", str(a["account"])]
        if a["path"] is not None:
            args += ["--path", a["path"]]
        return args + [str(a["start"]), str(a["end"])]
    elif command == "getdescriptors":
        return ["getdescriptors", "--account", str(a["account"])]
    elif command == "displayaddress":
        if a.get("desc") is not None:
            return ["displayaddress", "--desc", a["desc"]]
        return ["displayaddress", "--path", a["path"], "--addr-type", str(a["addr_type"])]
    elif command == "setup":
        return ["setup", "--label", a["label"], "--backup_passphrase", a["backup_passphrase"]]
    elif command == "restore":
        return ["restore", "--word_count", str(a["word_count"]), "--label", a["label"]]
    elif command == "backup":
        return ["backup", "--label", a["label"], "--backup_passphrase", a["backup_passphrase"]]
    elif command in ("wipe", "promptpin", "togglepassphrase"):
        return [command]
    elif command == "sendpin":
        return ["sendpin", a["pin"]]
    elif command == "installudevrules":
        return ["installudevrules", "--location", a["location"]]
    raise UnsupportedCommandError(f"Unknown command {command}")


class BinaryBackend(Backend):
    """
    Backend running the ``hwi`` command line tool
    """

    name = "binary"

    def __init__(self, executor: Optional[BinaryExecutor] = None, binary: str = "hwi") -> None:
        """
        :param executor: How to run ``hwi``. Defaults to a :class:`SubprocessExecutor` for ``binary``.
        :param binary: The ``hwi`` executable, used when no executor is given
        """
        self.executor: BinaryExecutor = executor if executor is not None else SubprocessExecutor(binary)

    def _run(self, args: List[str]) -> str:
        LOG.debug("Running hwi %s", " ".join(redact(args)))
        return self.executor.execute_command(args)

    def _run_json(self, args: List[str]) -> Any:
        output = self._run(args)
        try:
            return json.loads(output)
        except ValueError:
            raise UnknownError(f"hwi printed something that is not JSON: {output.strip()}")

    def enumerate(self, password: str = "", chain: Chain = Chain.MAIN, expert: bool = False) -> Any:
        return self._run_json(global_args(None, chain, expert, password) + ["enumerate"])

    def invoke(self, binding: Optional[Binding], request: Request) -> Any:
        if request.command == "version":
            return self._run(["--version"])
        if request.command == "installudevrules":
            return self._run_json(command_args(request))

        if binding is None:
            raise DeviceNotFoundError(f"{request.command} needs a device")
        expert = binding.expert or bool(request.get("expert"))
        interactive = request.command in ("setup", "restore")
        args = global_args(binding, binding.chain, expert, binding.password, interactive)
        return self._run_json(args + command_args(request))
