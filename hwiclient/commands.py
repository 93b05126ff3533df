"""
Commands
********

The functions in this module are the entry points that do not need a bound device, and the ways to bind one.

The :func:`~enumerate` function returns the devices that are available to be connected to.
These can then be used with :func:`~bind` to get a :class:`~hwiclient.client.HWIClient`,
or :func:`~find_device` can look a device up by type or fingerprint and bind it in one step.

Every function takes an optional ``backend``. When it is not given, the process-wide
:func:`~hwiclient.backends.default_backend` is used.
"""

import logging

from typing import (
    List,
    Optional,
    Union,
)

import semver

from . import marshal
from .backends import default_backend
from .backends.base import Backend
from .client import HWIClient
from .common import Chain
from .errors import (
    DeviceNotFoundError,
    InvalidArgumentError,
    UnsupportedCommandError,
)
from .types import Binding, Device, Request, Status


LOG = logging.getLogger(__name__)

#: Versions of HWI whose command interface this package is written against
MIN_HWI_VERSION = semver.Version(2, 0, 0)
MAX_HWI_VERSION = semver.Version(4, 0, 0)


def _backend(backend: Optional[Backend]) -> Backend:
    return backend if backend is not None else default_backend()


# Get a list of all available hardware wallets
def enumerate(password: str = "", chain: Chain = Chain.MAIN, expert: bool = False, backend: Optional[Backend] = None) -> List[Device]:
    """
    Enumerate all of the devices that HWI can potentially access.

    The order of the returned devices is whatever order HWI found them in, which is not guaranteed to be stable between calls.

    :param password: The password to use for devices which take passwords from the host.
    :param chain: The chain to enumerate for
    :param expert: Whether to enumerate in expert mode
    :param backend: The backend to use
    :return: A list of devices for which clients can be created. Devices that could not be probed have ``error`` set.
    """
    return marshal.enumerate_devices(_backend(backend), password, marshal.encode_chain(chain), expert)


def bind(
    device_or_path: Union[Device, str],
    chain: Chain = Chain.MAIN,
    expert: bool = False,
    device_type: Optional[str] = None,
    password: str = "",
    backend: Optional[Backend] = None,
) -> HWIClient:
    """
    Get a client for a device. The device is not contacted until the first operation.

    :param device_or_path: A device returned by :func:`enumerate`, or a device path as reported by enumeration
    :param chain: The chain the client will use
    :param expert: Whether the client is in expert mode (more detailed output for some commands)
    :param device_type: The type of device. Required when binding by path.
    :param password: The password to use for this device
    :param backend: The backend to use
    :raises: InvalidArgumentError: if a path is given without a device type
    """
    if isinstance(device_or_path, Device):
        binding = Binding(
            device_type=device_or_path.device_type,
            path=device_or_path.path,
            fingerprint=device_or_path.fingerprint,
            password=password,
            chain=chain,
            expert=expert,
        )
    else:
        if not device_type:
            raise InvalidArgumentError("A device type is needed to bind a device by path")
        if not isinstance(device_or_path, str) or not device_or_path:
            raise InvalidArgumentError(f"Not a device path: {device_or_path!r}")
        binding = Binding(device_type=device_type, path=device_or_path, password=password, chain=chain, expert=expert)
    return HWIClient(binding, _backend(backend))


# Fingerprint or device type required
def find_device(
    password: str = "",
    device_type: Optional[str] = None,
    fingerprint: Optional[str] = None,
    expert: bool = False,
    chain: Chain = Chain.MAIN,
    backend: Optional[Backend] = None,
) -> HWIClient:
    """
    Find a device from the device type or fingerprint and get a client to access it.
    This is used as an alternative to :func:`~bind` if the device path is not known.

    :param password: A password that may be needed to access the device if it can take passwords from the host
    :param device_type: The type or model of device. If not provided, the fingerprint must be provided
    :param fingerprint: The fingerprint of the master public key for the device.
        If not provided, device_type must be provided.
    :param expert: Whether the device should be opened in expert mode (enables additional output for some actions)
    :param chain: The Chain this client will be using
    :param backend: The backend to use
    :return: A client bound to the first matching device
    :raises: DeviceNotFoundError: if no enumerated device matches
    """
    if device_type is None and fingerprint is None:
        raise InvalidArgumentError("A device type or fingerprint is needed to find a device")

    backend = _backend(backend)
    for d in enumerate(password, chain, expert, backend):
        if device_type is not None and d.device_type != device_type and d.model != device_type:
            continue
        if fingerprint is not None and (d.fingerprint is None or d.fingerprint.lower() != fingerprint.lower()):
            # Locked devices do not report a fingerprint
            continue
        LOG.debug("Found %s at %s", d.model, d.path)
        return bind(d, chain=chain, expert=expert, password=password, backend=backend)
    raise DeviceNotFoundError("Could not find device with specified fingerprint or type")


def get_version(backend: Optional[Backend] = None) -> semver.Version:
    """
    Get the version of HWI the backend uses
    """
    return marshal.run(_backend(backend), None, Request("version"))  # type: ignore


def check_version(backend: Optional[Backend] = None) -> semver.Version:
    """
    Check that the backend's HWI is a version this package supports.

    :return: The version
    :raises: UnsupportedCommandError: if the version is outside [:data:`MIN_HWI_VERSION`, :data:`MAX_HWI_VERSION`)
    """
    version = get_version(backend)
    if not MIN_HWI_VERSION <= version < MAX_HWI_VERSION:
        raise UnsupportedCommandError(f"HWI {version} is not supported, need >= {MIN_HWI_VERSION} and < {MAX_HWI_VERSION}")
    return version


def install_udev_rules(source: str = "udev", location: str = "/etc/udev/rules.d/", backend: Optional[Backend] = None) -> Status:
    """
    Install HWI's udev rules so that devices can be used without root on Linux.
    See ``hwilib.commands.install_udev_rules``. Usually needs to be run as root.

    :param source: The directory containing the rules, relative to the ``hwilib`` package. Ignored by the binary backend, which uses its bundled rules.
    :param location: The directory to install the rules to
    :param backend: The backend to use
    """
    return marshal.run(_backend(backend), None, Request("installudevrules", {"source": source, "location": location}))  # type: ignore


def set_log_level(level: int, backend: Optional[Backend] = None) -> None:
    """
    Set how much HWI logs.

    :param level: A :mod:`logging` level such as ``logging.DEBUG``
    :raises: UnsupportedCommandError: if the backend cannot change it
    """
    backend = _backend(backend)
    with marshal.invocation_lock():
        backend.set_log_level(level)
