"""
Marshaling
**********

The functions in this module move values across the boundary to the wrapped library.

Arguments are validated and encoded by the ``encode_*`` functions before anything is sent, so malformed input
fails with :class:`~hwiclient.errors.InvalidArgumentError` without touching the device.
:func:`call` sends one :class:`~hwiclient.types.Request` through a backend while holding the process-wide
invocation lock, and :func:`decode` turns the raw value that comes back into one typed result.
An error shaped payload (``{"error": ..., "code": ...}``) is raised as the matching
:class:`~hwiclient.errors.HWIClientError` instead.
"""

import base64
import binascii
import logging
import re
import threading

from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Union,
    TYPE_CHECKING,
)

import semver

from .common import AddressType, Chain
from .errors import (
    HWIClientError,
    InvalidArgumentError,
    UnknownError,
    lift_error,
    lift_exception,
)
from .key import HARDENED_FLAG, DerivationPath
from .types import (
    Address,
    Binding,
    Descriptors,
    Device,
    ExtendedPubKey,
    KeyPoolElement,
    OperationResult,
    Request,
    Signature,
    SignedPsbt,
    Status,
)

if TYPE_CHECKING:
    from .backends.base import Backend


LOG = logging.getLogger(__name__)

# hwilib and the device libraries underneath it are not safe for concurrent use.
# Every call into a backend, from any handle, holds this lock.
_invoke_lock = threading.RLock()

PSBT_MAGIC = b"psbt\xff"
VALID_WORD_COUNTS = (12, 18, 24)

_DESCRIPTOR_RE = re.compile(r"^[a-z_]+\(.+\)(#[a-z0-9]{8})?$", re.DOTALL)
_PIN_RE = re.compile(r"[1-9]+")

PathLike = Union[DerivationPath, str, Sequence[int]]


def invocation_lock() -> threading.RLock:
    """
    The process-wide lock serializing every call into the wrapped library
    """
    return _invoke_lock


# Encoding

def encode_path(path: PathLike) -> str:
    """
    Validate a derivation path and return it in canonical string form.

    :raises: InvalidArgumentError: if the path is malformed
    """
    return DerivationPath.coerce(path).to_string()

def encode_path_template(path: PathLike) -> str:
    """
    Encode the base path of a key range. The result always ends in ``/*``.

    ``m/84h/0h/0h/0``, ``m/84h/0h/0h/0/*`` and the equivalent :class:`~hwiclient.key.DerivationPath` all encode to ``m/84h/0h/0h/0/*``.
    """
    if isinstance(path, str) and path.endswith("/*"):
        path = path[:-2]
    return encode_path(path) + "/*"

def encode_index(value: int, name: str) -> int:
    """
    Validate an unhardened BIP 32 index such as an account number or a keypool bound
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidArgumentError(f"{name} must be an integer, got {value!r}")
    if value < 0 or value >= HARDENED_FLAG:
        raise InvalidArgumentError(f"{name} out of range: {value}")
    return value

def encode_range(start: int, end: int) -> Dict[str, int]:
    start = encode_index(start, "start")
    end = encode_index(end, "end")
    if start > end:
        raise InvalidArgumentError(f"Range start {start} is after end {end}")
    return {"start": start, "end": end}

def encode_psbt(psbt: Union[bytes, str]) -> str:
    """
    Encode a PSBT for the library, which takes it as Base64.

    :param psbt: The serialized PSBT, or its Base64 encoding
    :raises: InvalidArgumentError: if the input is not a PSBT
    """
    if isinstance(psbt, str):
        try:
            raw = base64.b64decode(psbt, validate=True)
        except (binascii.Error, ValueError):
            raise InvalidArgumentError("PSBT string is not valid Base64")
    elif isinstance(psbt, (bytes, bytearray)):
        raw = bytes(psbt)
    else:
        raise InvalidArgumentError(f"PSBT must be bytes or a Base64 string, got {type(psbt).__name__}")
    if not raw.startswith(PSBT_MAGIC):
        raise InvalidArgumentError("Not a PSBT: missing magic bytes")
    return base64.b64encode(raw).decode()

def encode_message(message: Union[str, bytes]) -> str:
    """
    Messages are passed as text. Bytes must be valid UTF-8 and strings must be encodable as UTF-8.
    """
    if isinstance(message, (bytes, bytearray)):
        try:
            return bytes(message).decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidArgumentError("Message is not valid UTF-8")
    if not isinstance(message, str):
        raise InvalidArgumentError(f"Message must be str or bytes, got {type(message).__name__}")
    try:
        message.encode("utf-8")
    except UnicodeEncodeError:
        raise InvalidArgumentError("Message cannot be encoded as UTF-8")
    return message

def encode_descriptor(desc: str) -> str:
    if not isinstance(desc, str) or _DESCRIPTOR_RE.match(desc.strip()) is None:
        raise InvalidArgumentError(f"Not an output descriptor: {desc!r}")
    return desc.strip()

def encode_addr_type(addr_type: AddressType) -> AddressType:
    if not isinstance(addr_type, AddressType):
        raise InvalidArgumentError(f"Unknown address type: {addr_type!r}")
    return addr_type

def encode_chain(chain: Chain) -> Chain:
    if not isinstance(chain, Chain):
        raise InvalidArgumentError(f"Unknown chain: {chain!r}")
    return chain

def encode_word_count(word_count: int) -> int:
    if word_count not in VALID_WORD_COUNTS:
        raise InvalidArgumentError(f"Word count must be one of {VALID_WORD_COUNTS}, got {word_count!r}")
    return word_count

def encode_pin(pin: str) -> str:
    """
    PINs are sent as the positions of the digits on the device's scrambled keypad, each 1 to 9
    """
    if not isinstance(pin, str) or _PIN_RE.fullmatch(pin) is None:
        raise InvalidArgumentError("PIN must be a string of keypad positions 1-9")
    return pin


# Invocation

def call(backend: 'Backend', binding: Optional[Binding], request: Request) -> Any:
    """
    Send a request to a backend and return the raw value it produced.

    The call holds the process-wide invocation lock for its whole duration, including any wait for the user to confirm on the device.
    Exceptions raised by the backend are converted with :func:`~hwiclient.errors.lift_exception`.
    """
    with _invoke_lock:
        LOG.debug("Invoking %s on %s", request.command, binding.path if binding else "no device")
        try:
            return backend.invoke(binding, request)
        except HWIClientError:
            raise
        except Exception as e:
            raise lift_exception(e) from e

def run(backend: 'Backend', binding: Optional[Binding], request: Request) -> OperationResult:
    """
    :func:`call` followed by :func:`decode`
    """
    return decode(request, call(backend, binding, request))

def enumerate_devices(backend: 'Backend', password: str = "", chain: Chain = Chain.MAIN, expert: bool = False) -> List[Device]:
    """
    Ask a backend for all connected devices.

    Devices that were found but could not be probed are still returned, with their ``error`` set.
    """
    with _invoke_lock:
        LOG.debug("Enumerating devices")
        try:
            raw = backend.enumerate(password, chain, expert)
        except HWIClientError:
            raise
        except Exception as e:
            raise lift_exception(e) from e
    devices = decode_devices(raw)
    for d in devices:
        if d.error is not None:
            LOG.warning("%s at %s: %s", d.device_type, d.path, d.error)
    return devices


# Decoding

def check_error(raw: Any) -> None:
    """
    Raise the matching :class:`~hwiclient.errors.HWIClientError` if ``raw`` is an error payload
    """
    if isinstance(raw, dict) and "error" in raw:
        code = raw.get("code")
        if not isinstance(code, int) or isinstance(code, bool):
            code = None
        raise lift_error(str(raw["error"]), code)

def _unexpected(command: str, raw: Any) -> UnknownError:
    return UnknownError(f"Unexpected result for {command}: {raw!r}")

def _field(command: str, raw: Any, key: str, kind: Any) -> Any:
    if not isinstance(raw, dict) or key not in raw or not isinstance(raw[key], kind):
        raise _unexpected(command, raw)
    return raw[key]

def _str_list(command: str, raw: Any, key: str) -> tuple:
    value = _field(command, raw, key, list)
    if not all(isinstance(v, str) for v in value):
        raise _unexpected(command, raw)
    return tuple(value)

def decode_devices(raw: Any) -> List[Device]:
    check_error(raw)
    if not isinstance(raw, list):
        raise _unexpected("enumerate", raw)
    devices = []
    for d in raw:
        if not isinstance(d, dict):
            raise _unexpected("enumerate", raw)
        device_type = d.get("type")
        path = d.get("path")
        if not isinstance(device_type, str) or not device_type or not isinstance(path, str) or not path:
            raise _unexpected("enumerate", d)
        code = d.get("code")
        error = d.get("error")
        devices.append(Device(
            device_type=device_type,
            model=str(d.get("model") or device_type),
            path=path,
            needs_pin_sent=bool(d.get("needs_pin_sent", False)),
            needs_passphrase_sent=bool(d.get("needs_passphrase_sent", False)),
            fingerprint=d.get("fingerprint") if isinstance(d.get("fingerprint"), str) else None,
            error=str(error) if error is not None else None,
            code=code if isinstance(code, int) and not isinstance(code, bool) else None,
        ))
    return devices

def _decode_xpub(request: Request, raw: Any) -> ExtendedPubKey:
    xpub = _field(request.command, raw, "xpub", str)
    details = {k: v for k, v in raw.items() if k != "xpub"}
    return ExtendedPubKey(xpub, details)

def _decode_signtx(request: Request, raw: Any) -> SignedPsbt:
    psbt = _field(request.command, raw, "psbt", str)
    try:
        psbt_bytes = base64.b64decode(psbt, validate=True)
    except (binascii.Error, ValueError):
        raise _unexpected(request.command, raw)
    signed = raw.get("signed")
    if not isinstance(signed, bool):
        # Older versions of HWI do not report whether anything was signed
        signed = psbt != request.get("psbt")
    return SignedPsbt(psbt_bytes, signed)

def _decode_signmessage(request: Request, raw: Any) -> Signature:
    return Signature(_field(request.command, raw, "signature", str))

def _decode_address(request: Request, raw: Any) -> Address:
    return Address(_field(request.command, raw, "address", str))

def _decode_descriptors(request: Request, raw: Any) -> Descriptors:
    return Descriptors(
        receive=_str_list(request.command, raw, "receive"),
        internal=_str_list(request.command, raw, "internal"),
    )

def _decode_keypool(request: Request, raw: Any) -> List[KeyPoolElement]:
    if not isinstance(raw, list):
        raise _unexpected(request.command, raw)
    result = []
    for e in raw:
        r = _field(request.command, e, "range", list)
        if len(r) != 2 or not all(isinstance(i, int) for i in r):
            raise _unexpected(request.command, e)
        active = e.get("active")
        result.append(KeyPoolElement(
            desc=_field(request.command, e, "desc", str),
            range=(r[0], r[1]),
            timestamp=str(e.get("timestamp", "now")),
            internal=_field(request.command, e, "internal", bool),
            keypool=_field(request.command, e, "keypool", bool),
            watchonly=_field(request.command, e, "watchonly", bool),
            active=active if isinstance(active, bool) else None,
        ))
    return result

def _decode_status(request: Request, raw: Any) -> Status:
    return Status(_field(request.command, raw, "success", bool))

def _decode_version(request: Request, raw: Any) -> semver.Version:
    if not isinstance(raw, str):
        raise _unexpected(request.command, raw)
    # hwi --version prints "hwi 3.1.0"
    version = raw.strip().split(" ")[-1]
    try:
        return semver.Version.parse(version, optional_minor_and_patch=True)
    except ValueError:
        raise _unexpected(request.command, raw)


DECODERS: Dict[str, Callable[[Request, Any], Any]] = {
    "getmasterxpub": _decode_xpub,
    "getxpub": _decode_xpub,
    "signtx": _decode_signtx,
    "signmessage": _decode_signmessage,
    "displayaddress": _decode_address,
    "getdescriptors": _decode_descriptors,
    "getkeypool": _decode_keypool,
    "setup": _decode_status,
    "wipe": _decode_status,
    "restore": _decode_status,
    "backup": _decode_status,
    "promptpin": _decode_status,
    "sendpin": _decode_status,
    "togglepassphrase": _decode_status,
    "installudevrules": _decode_status,
    "version": _decode_version,
}

def decode(request: Request, raw: Any) -> OperationResult:
    """
    Convert the raw value returned for ``request`` into its typed result.

    :raises: HWIClientError: the lifted error if ``raw`` is an error payload,
        :class:`~hwiclient.errors.UnknownError` if it does not have the shape the command produces
    """
    check_error(raw)
    decoder = DECODERS.get(request.command)
    if decoder is None:
        raise UnknownError(f"No decoder for command {request.command}")
    return decoder(request, raw)
