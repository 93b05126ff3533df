"""
Derivation Paths
****************

Parsing and canonical formatting of BIP 32 derivation paths.
Paths are validated here so that malformed input never reaches the wrapped library.
"""

import re

from typing import (
    Iterable,
    List,
    Sequence,
    Union,
)

from .common import AddressType, Chain
from .errors import InvalidArgumentError


HARDENED_FLAG = 1 << 31
MAX_DEPTH = 255 # BIP 32 stores the depth in a single byte

_COMPONENT_RE = re.compile(r"^(0|[1-9][0-9]*)(['hH]?)$")


def H_(x: int) -> int:
    """
    Shortcut function that "hardens" a number in a BIP44 path.
    """
    return x | HARDENED_FLAG

def is_hardened(i: int) -> bool:
    """
    Returns whether an index is hardened
    """
    return i & HARDENED_FLAG != 0


def parse_path(nstr: str) -> List[int]:
    """
    Convert BIP32 path string to list of uint32 integers with hardened flags.
    Both ``1'`` and ``1h`` mark a hardened index. A leading ``m`` is optional.

    e.g.: "m/0/1h/1" -> [0, 0x80000001, 1]

    :param nstr: path string
    :return: list of integers
    :raises: InvalidArgumentError: if the path is malformed, too deep, or has an index out of range
    """
    if not isinstance(nstr, str):
        raise InvalidArgumentError(f"Derivation path must be a string, got {type(nstr).__name__}")

    n = nstr.split("/")

    # m/a/b/c => a/b/c
    if n[0] == "m":
        n = n[1:]
    if len(n) > MAX_DEPTH:
        raise InvalidArgumentError(f"Derivation path is deeper than {MAX_DEPTH}: {nstr}")

    result = []
    for x in n:
        match = _COMPONENT_RE.match(x)
        if match is None:
            raise InvalidArgumentError(f"Invalid BIP32 path: {nstr}")
        index = int(match.group(1))
        if index >= HARDENED_FLAG:
            raise InvalidArgumentError(f"Derivation index {index} out of range in {nstr}")
        result.append(H_(index) if match.group(2) else index)
    return result


class DerivationPath(object):
    """
    An immutable BIP 32 derivation path, stored as a tuple of uint32 indices.
    """

    def __init__(self, indices: Iterable[int] = ()) -> None:
        """
        :param indices: The path indices, with :data:`HARDENED_FLAG` set on hardened ones
        :raises: InvalidArgumentError: if the path is too deep or an index is not a uint32
        """
        path = tuple(indices)
        if len(path) > MAX_DEPTH:
            raise InvalidArgumentError(f"Derivation path is deeper than {MAX_DEPTH}")
        for i in path:
            if not isinstance(i, int) or isinstance(i, bool) or i < 0 or i > 0xFFFFFFFF:
                raise InvalidArgumentError(f"Invalid derivation index: {i!r}")
        self._path = path

    @classmethod
    def from_string(cls, s: str) -> 'DerivationPath':
        """
        Parse a path like ``m/84'/0'/0'/0/1``

        :param s: The path string
        """
        return cls(parse_path(s))

    @classmethod
    def coerce(cls, path: Union['DerivationPath', str, Sequence[int]]) -> 'DerivationPath':
        """
        Accept a :class:`DerivationPath`, a path string, or a sequence of indices.
        """
        if isinstance(path, DerivationPath):
            return path
        if isinstance(path, str):
            return cls.from_string(path)
        if isinstance(path, (list, tuple)):
            return cls(path)
        raise InvalidArgumentError(f"Not a derivation path: {path!r}")

    @property
    def indices(self) -> Sequence[int]:
        return self._path

    @property
    def depth(self) -> int:
        return len(self._path)

    def child(self, i: int) -> 'DerivationPath':
        return DerivationPath(self._path + (i,))

    def to_string(self, hardened_char: str = "h") -> str:
        """
        Return the path in its canonical form, ``m`` followed by ``/``-separated indices.

        :param hardened_char: The character used to mark hardened indices. Either ``h`` or ``'``.
        """
        s = "m"
        for i in self._path:
            hardened = is_hardened(i)
            s += "/" + str(i & ~HARDENED_FLAG)
            if hardened:
                s += hardened_char
        return s

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"DerivationPath('{self.to_string()}')"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DerivationPath):
            return NotImplemented
        return self._path == other._path

    def __hash__(self) -> int:
        return hash(self._path)

    def __len__(self) -> int:
        return len(self._path)


def get_bip44_purpose(addrtype: AddressType) -> int:
    """
    Determine the BIP 44 purpose based on the given :class:`~hwiclient.common.AddressType`.

    :param addrtype: The address type
    """
    if addrtype == AddressType.LEGACY:
        return 44
    elif addrtype == AddressType.SH_WIT:
        return 49
    elif addrtype == AddressType.WIT:
        return 84
    elif addrtype == AddressType.TAP:
        return 86
    else:
        raise InvalidArgumentError("Unknown address type")


def get_bip44_chain(chain: Chain) -> int:
    """
    Determine the BIP 44 coin type based on the Bitcoin chain type.

    For the Bitcoin mainnet chain, this returns 0. For the other chains, this returns 1.

    :param chain: The chain
    """
    if chain == Chain.MAIN:
        return 0
    else:
        return 1


def standard_path(addrtype: AddressType, chain: Chain, account: int = 0) -> DerivationPath:
    """
    The BIP 44 style account path for an address type, e.g. ``m/84h/0h/0h``
    """
    return DerivationPath([H_(get_bip44_purpose(addrtype)), H_(get_bip44_chain(chain)), H_(account)])
