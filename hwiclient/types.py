"""
Devices, Requests and Results
*****************************

Value types that cross the boundary between callers and the wrapped library.
All of them are immutable snapshots and safe to share between threads.
"""

import base64
import binascii

from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

import semver

from .common import Chain, DeviceType


@dataclass(frozen=True)
class Device:
    """
    A hardware wallet found by enumeration.

    If the device was found but could not be fully probed (e.g. it is locked and needs a PIN),
    ``error`` and ``code`` describe why.
    """
    device_type: str
    model: str
    path: str
    needs_pin_sent: bool = False
    needs_passphrase_sent: bool = False
    fingerprint: Optional[str] = None
    error: Optional[str] = None
    code: Optional[int] = None

    @property
    def family(self) -> Optional[DeviceType]:
        return DeviceType.from_type(self.device_type)

    @property
    def has_error(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class Binding:
    """
    What a client handle is bound to: a device address plus the context every call is made in.
    """
    device_type: Optional[str]
    path: Optional[str]
    fingerprint: Optional[str] = None
    password: str = field(default="", repr=False)
    chain: Chain = Chain.MAIN
    expert: bool = False


@dataclass(frozen=True)
class Request:
    """
    One library call: the HWI command name and its already encoded arguments.
    """
    command: str
    args: Mapping[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.args[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.args.get(key, default)


@dataclass(frozen=True)
class ExtendedPubKey:
    """
    An extended public key.
    In expert mode ``details`` holds the decoded fields HWI prints alongside the xpub.
    """
    xpub: str
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Signature:
    """
    A Base64 encoded Bitcoin signed message signature
    """
    signature: str

    def _header(self) -> Optional[int]:
        try:
            raw = base64.b64decode(self.signature, validate=True)
        except (binascii.Error, ValueError):
            return None
        if len(raw) != 65 or not 27 <= raw[0] <= 42:
            return None
        return raw[0]

    @property
    def recovery_id(self) -> Optional[int]:
        """
        The public key recovery id encoded in the compact signature header, or ``None`` if the signature is not a compact one.
        """
        header = self._header()
        if header is None:
            return None
        return (header - 27) & 3

    @property
    def compressed(self) -> Optional[bool]:
        """
        Whether the signing key is compressed. Headers 27-30 are uncompressed P2PKH, 31 and above use compressed keys.
        """
        header = self._header()
        if header is None:
            return None
        return header >= 31


@dataclass(frozen=True)
class Address:
    address: str


@dataclass(frozen=True)
class Descriptors:
    """
    Receive and change descriptors, one per address type the device supports
    """
    receive: Tuple[str, ...]
    internal: Tuple[str, ...]


@dataclass(frozen=True)
class SignedPsbt:
    psbt: bytes
    signed: bool

    def to_base64(self) -> str:
        return base64.b64encode(self.psbt).decode()


@dataclass(frozen=True)
class KeyPoolElement:
    """
    One entry of ``getkeypool`` output, in the form Bitcoin Core's ``importdescriptors`` accepts
    """
    desc: str
    range: Tuple[int, int]
    timestamp: str
    internal: bool
    keypool: bool
    watchonly: bool
    active: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "desc": self.desc,
            "range": list(self.range),
            "timestamp": self.timestamp,
            "internal": self.internal,
            "keypool": self.keypool,
            "watchonly": self.watchonly,
        }
        if self.active is not None:
            d["active"] = self.active
        return d


@dataclass(frozen=True)
class Status:
    success: bool


OperationResult = Union[
    ExtendedPubKey,
    Signature,
    Address,
    Descriptors,
    SignedPsbt,
    List[KeyPoolElement],
    Status,
    semver.Version,
]
