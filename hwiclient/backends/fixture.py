"""
Fixture Backend
***************

A deterministic, in-memory stand-in for HWI. Devices and command results are given up front,
and every call is recorded so tests can check what would have been sent to the library.

Responses are looked up by command name. A response may be a raw value, an exception to raise,
or a callable taking ``(binding, request)`` and returning either of those.
"""

import copy

from typing import (
    Any,
    Dict,
    List,
    Optional,
    Set,
    Tuple,
)

from .base import Backend
from ..common import Chain
from ..errors import DEVICE_CONN_ERROR, NOT_IMPLEMENTED
from ..types import Binding, Request


class FixtureBackend(Backend):
    """
    Backend answering from fixtures
    """

    name = "fixture"

    def __init__(self, devices: Optional[List[Dict[str, Any]]] = None, responses: Optional[Dict[str, Any]] = None, version: str = "3.1.0") -> None:
        """
        :param devices: Device dictionaries, in the shape ``hwilib.commands.enumerate`` returns
        :param responses: ``{command: response}``
        :param version: The HWI version to report
        """
        self.devices = list(devices or [])
        self.responses = dict(responses or {})
        self.version = version
        self.calls: List[Tuple[Optional[Binding], Request]] = []
        self.released: List[Binding] = []
        self.disconnected: Set[str] = set()

    def disconnect(self, path: str) -> None:
        """
        Simulate unplugging the device at ``path``
        """
        self.disconnected.add(path)

    def commands(self) -> List[str]:
        return [r.command for _, r in self.calls]

    def enumerate(self, password: str = "", chain: Chain = Chain.MAIN, expert: bool = False) -> Any:
        self.calls.append((None, Request("enumerate", {"password": password, "chain": chain, "expert": expert})))
        return [copy.deepcopy(d) for d in self.devices if d.get("path") not in self.disconnected]

    def _known(self, binding: Binding) -> bool:
        if binding.path:
            return any(d.get("path") == binding.path for d in self.devices)
        return any(
            (binding.fingerprint is None or d.get("fingerprint") == binding.fingerprint)
            and (binding.device_type is None or d.get("type") == binding.device_type)
            for d in self.devices
        )

    def invoke(self, binding: Optional[Binding], request: Request) -> Any:
        self.calls.append((binding, request))
        if request.command == "version":
            return self.version

        if binding is not None:
            if binding.path in self.disconnected or not self._known(binding):
                return {"error": f"Could not open device at {binding.path}", "code": DEVICE_CONN_ERROR}

        response = self.responses.get(request.command)
        if response is None:
            return {"error": f"{request.command} is not implemented for this device", "code": NOT_IMPLEMENTED}
        if callable(response):
            response = response(binding, request)
        if isinstance(response, BaseException):
            raise response
        return copy.deepcopy(response)

    def release(self, binding: Binding) -> None:
        self.released.append(binding)
