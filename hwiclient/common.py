"""
Common Classes and Utilities
****************************

Enumerations shared by the client, the marshaling layer and the backends.
The member names match the ones used by ``hwilib.common`` so that values can be
converted by name when talking to the in-process library.
"""

from enum import Enum

from typing import Optional, Union


class Chain(Enum):
    """
    The blockchain network to use
    """
    MAIN = 0 #: Bitcoin Main network
    TEST = 1 #: Bitcoin Test network
    REGTEST = 2 #: Bitcoin Core Regression Test network
    SIGNET = 3 #: Bitcoin Signet

    def __str__(self) -> str:
        return str(self.name).lower()

    def __repr__(self) -> str:
        return str(self)

    @staticmethod
    def argparse(s: str) -> Union['Chain', str]:
        try:
            return Chain[s.upper()]
        except KeyError:
            return s


class AddressType(Enum):
    """
    The type of address to use
    """
    LEGACY = 1 #: Legacy address type. P2PKH for single sig, P2SH for scripts.
    WIT = 2 #: Native segwit v0 address type. P2WPKH for single sig, P2WSH for scripts.
    SH_WIT = 3 #: Nested segwit v0 address type. P2SH-P2WPKH for single sig, P2SH-P2WSH for scripts.
    TAP = 4 #: Segwit v1 Taproot address type. P2TR always.

    def __str__(self) -> str:
        return str(self.name).lower()

    def __repr__(self) -> str:
        return str(self)

    @staticmethod
    def argparse(s: str) -> Union['AddressType', str]:
        try:
            return AddressType[s.upper()]
        except KeyError:
            return s


class DeviceType(Enum):
    """
    Hardware wallet families known to HWI.
    The value is the ``type`` string reported by enumeration.
    """
    LEDGER = "ledger"
    TREZOR = "trezor"
    KEEPKEY = "keepkey"
    COLDCARD = "coldcard"
    JADE = "jade"
    BITBOX01 = "digitalbitbox"
    BITBOX02 = "bitbox02"
    ONEKEY = "onekey"
    PKCS11 = "pkcs11"

    def __str__(self) -> str:
        return self.value

    @staticmethod
    def from_type(device_type: str) -> Optional['DeviceType']:
        """
        Look up the family for a ``type`` string, or ``None`` if HWI reported a type we do not know about.

        Emulated devices are reported as e.g. ``trezor_simulator``; only the part before the first underscore is used.
        """
        try:
            return DeviceType(device_type.split('_')[0].lower())
        except ValueError:
            return None
