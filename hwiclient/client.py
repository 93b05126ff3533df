"""
Hardware Wallet Client
**********************

The :class:`HWIClient` is a handle bound to one device. Create one with :func:`~hwiclient.commands.bind`
or :func:`~hwiclient.commands.find_device`, or directly from a :class:`~hwiclient.types.Binding`.

Binding does not talk to the device. The first operation does, and fails with
:class:`~hwiclient.errors.DeviceConnError` if the device is not reachable.

Every operation blocks until the device answers, which can include waiting for the user to confirm on the device.
Calls from all clients in the process are serialized. There is no timeout: to bound the wait, run the call on a
worker thread and stop waiting for it; the call itself cannot be interrupted.

Clients should be closed when done. They are context managers::

    with bind(device, chain=Chain.TEST) as client:
        print(client.get_xpub("m/84h/1h/0h").xpub)
"""

from types import TracebackType
from typing import (
    Any,
    List,
    Optional,
    Type,
    Union,
)

from . import marshal
from .backends import default_backend
from .backends.base import Backend
from .common import AddressType, Chain
from .errors import DeviceConnError, InvalidArgumentError
from .key import DerivationPath, standard_path
from .marshal import PathLike
from .types import (
    Address,
    Binding,
    Descriptors,
    ExtendedPubKey,
    KeyPoolElement,
    Request,
    Signature,
    SignedPsbt,
    Status,
)


class HWIClient(object):
    """
    A client for one hardware wallet, going through a :class:`~hwiclient.backends.base.Backend`.
    """

    def __init__(self, binding: Binding, backend: Optional[Backend] = None) -> None:
        """
        :param binding: The device to talk to and the chain and mode to use
        :param backend: The backend to go through. Defaults to :func:`~hwiclient.backends.default_backend`.
        """
        marshal.encode_chain(binding.chain)
        self.binding = binding
        self.backend = backend if backend is not None else default_backend()
        self._closed = False

    @property
    def chain(self) -> Chain:
        return self.binding.chain

    @property
    def expert(self) -> bool:
        return self.binding.expert

    @property
    def device_type(self) -> Optional[str]:
        return self.binding.device_type

    @property
    def path(self) -> Optional[str]:
        return self.binding.path

    @property
    def closed(self) -> bool:
        return self._closed

    def account_path(self, addr_type: AddressType = AddressType.WIT, account: int = 0) -> DerivationPath:
        """
        The BIP 44 style account path HWI uses for an address type on this client's chain, e.g. ``m/84h/1h/0h`` on testnet
        """
        return standard_path(marshal.encode_addr_type(addr_type), self.chain, marshal.encode_index(account, "account"))

    def _run(self, command: str, **args: Any) -> Any:
        with marshal.invocation_lock():
            if self._closed:
                raise DeviceConnError("Client has been closed")
            return marshal.run(self.backend, self.binding, Request(command, args))

    def get_master_xpub(self, addr_type: AddressType = AddressType.WIT, account: int = 0) -> ExtendedPubKey:
        """
        Get the extended public key for the BIP 44 standard account path of an address type on this client's chain,
        e.g. ``m/84h/0h/0h`` for native segwit account 0 on mainnet.

        :param addr_type: The address type
        :param account: The BIP 44 account number
        """
        return self._run(
            "getmasterxpub",
            addr_type=marshal.encode_addr_type(addr_type),
            account=marshal.encode_index(account, "account"),
        )

    def sign_tx(self, psbt: Union[bytes, str]) -> SignedPsbt:
        """
        Sign a Partially Signed Bitcoin Transaction.

        :param psbt: The serialized PSBT, or its Base64 encoding
        :return: The PSBT as returned by the device, with whatever signatures it added
        """
        return self._run("signtx", psbt=marshal.encode_psbt(psbt))

    def get_xpub(self, path: PathLike) -> ExtendedPubKey:
        """
        Get the extended public key at a derivation path.
        In expert mode the decoded fields of the key are returned in ``details``.

        :param path: The BIP 32 derivation path
        """
        return self._run("getxpub", path=marshal.encode_path(path), expert=self.expert)

    def sign_message(self, message: Union[str, bytes], path: PathLike) -> Signature:
        """
        Sign a message with the Bitcoin signed message scheme.

        :param message: The message to sign
        :param path: The derivation path of the key to sign with
        """
        return self._run(
            "signmessage",
            message=marshal.encode_message(message),
            path=marshal.encode_path(path),
        )

    def get_keypool(
        self,
        start: int,
        end: int,
        path: Optional[PathLike] = None,
        internal: bool = False,
        keypool: bool = True,
        addr_type: AddressType = AddressType.WIT,
        addr_all: bool = False,
        account: int = 0,
    ) -> List[KeyPoolElement]:
        """
        Get descriptors for a range of keys, ready for Bitcoin Core's ``importdescriptors``.

        If neither ``path`` nor ``internal`` is given, entries for both the receive and change chains are returned.

        :param start: The first index of the range, inclusive
        :param end: The last index of the range, inclusive
        :param path: The derivation path the range hangs off, with or without the trailing ``/*``.
            Defaults to the BIP 44 standard path for ``addr_type`` and ``account``.
        :param internal: Whether the keys are change keys
        :param keypool: Whether the keys should be added to the keypool
        :param addr_type: The address type to produce descriptors for
        :param addr_all: Produce descriptors for every address type instead of just ``addr_type``.
            Cannot be combined with ``path`` or ``internal``.
        :param account: The BIP 44 account, used if ``path`` is not given
        """
        if addr_all and (path is not None or internal):
            raise InvalidArgumentError("A path or internal cannot be combined with all address types")
        return self._run(
            "getkeypool",
            path=marshal.encode_path_template(path) if path is not None else None,
            internal=bool(internal),
            keypool=bool(keypool),
            addr_type=marshal.encode_addr_type(addr_type),
            addr_all=bool(addr_all),
            account=marshal.encode_index(account, "account"),
            **marshal.encode_range(start, end),
        )

    def get_descriptors(self, account: int = 0) -> Descriptors:
        """
        Get receive and change descriptors for every address type the device supports.

        :param account: The BIP 44 account
        """
        return self._run("getdescriptors", account=marshal.encode_index(account, "account"))

    def display_address(self, path_or_descriptor: Union[PathLike, str], addr_type: AddressType = AddressType.WIT) -> Address:
        """
        Show an address on the device's screen and return it.

        :param path_or_descriptor: A derivation path (a :class:`~hwiclient.key.DerivationPath` or a string starting with ``m/``),
            or an output descriptor
        :param addr_type: The address type. Only used with a path.
        """
        if isinstance(path_or_descriptor, str) and path_or_descriptor != "m" and not path_or_descriptor.startswith("m/"):
            return self.display_address_with_desc(path_or_descriptor)
        return self.display_address_with_path(path_or_descriptor, addr_type)

    def display_address_with_path(self, path: PathLike, addr_type: AddressType = AddressType.WIT) -> Address:
        return self._run(
            "displayaddress",
            path=marshal.encode_path(path),
            desc=None,
            addr_type=marshal.encode_addr_type(addr_type),
        )

    def display_address_with_desc(self, descriptor: str) -> Address:
        return self._run("displayaddress", path=None, desc=marshal.encode_descriptor(descriptor))

    def toggle_passphrase(self) -> Status:
        """
        Toggle whether the device uses a BIP 39 passphrase
        """
        return self._run("togglepassphrase")

    def setup_device(self, label: str = "", passphrase: str = "") -> Status:
        """
        Set up a device that has not been initialized yet. Requires interaction on the device.

        :param label: The name to give the device
        :param passphrase: The passphrase for the backup, on devices that encrypt backups
        """
        return self._run("setup", label=label, backup_passphrase=passphrase)

    def restore_device(self, label: str = "", word_count: int = 24) -> Status:
        """
        Restore a device from its recovery phrase. Requires interaction on the device.

        :param label: The name to give the device
        :param word_count: The number of words in the recovery phrase: 12, 18 or 24
        """
        return self._run("restore", label=label, word_count=marshal.encode_word_count(word_count))

    def backup_device(self, label: str = "", passphrase: str = "") -> Status:
        return self._run("backup", label=label, backup_passphrase=passphrase)

    def wipe_device(self) -> Status:
        return self._run("wipe")

    def prompt_pin(self) -> Status:
        """
        Have the device show its PIN entry keypad. Follow with :meth:`send_pin`.
        """
        return self._run("promptpin")

    def send_pin(self, pin: str) -> Status:
        """
        :param pin: The positions of the PIN digits on the keypad the device shows
        """
        return self._run("sendpin", pin=marshal.encode_pin(pin))

    def close(self) -> None:
        """
        Release anything the backend holds for this device. Closing twice is harmless.
        """
        with marshal.invocation_lock():
            if self._closed:
                return
            self._closed = True
            self.backend.release(self.binding)

    def __enter__(self) -> 'HWIClient':
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<HWIClient {self.device_type} {self.path or self.binding.fingerprint} chain={self.chain}>"
