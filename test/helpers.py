#! /usr/bin/env python3

import base64
import copy

from hwiclient.backends.fixture import FixtureBackend

TREZOR = {
    "type": "trezor",
    "model": "trezor_t",
    "label": None,
    "path": "webusb:000:1:1",
    "fingerprint": "d34db33f",
    "needs_pin_sent": False,
    "needs_passphrase_sent": False,
}

COLDCARD = {
    "type": "coldcard",
    "model": "coldcard",
    "label": None,
    "path": "/tmp/ckcc-simulator.sock",
    "fingerprint": "0f056943",
    "needs_pin_sent": False,
    "needs_passphrase_sent": False,
}

LOCKED_KEEPKEY = {
    "type": "keepkey",
    "model": "keepkey",
    "label": None,
    "path": "hid:0001:0001:00",
    "needs_pin_sent": True,
    "needs_passphrase_sent": False,
    "error": "Could not open client or get fingerprint information: Keepkey is locked. Unlock by using 'promptpin' and then 'sendpin'.",
    "code": -12,
}

TPUB = "tpubDCwYjpDhUdPGP5rS3wgNg13mTrrjBuG8V9VpWbyptX6TRPbNoZVXsoVUSkCjmQ8jJycjuDKBb9eataSymXakTTaGifxR6kmVsfFehH1ZgJT"
RECEIVE_DESC = "wpkh([d34db33f/84h/1h/0h]" + TPUB + "/0/*)#vmksm4h4"
CHANGE_DESC = "wpkh([d34db33f/84h/1h/0h]" + TPUB + "/1/*)#jd6lk3c5"

# Magic, separator, a global unsigned tx key and the end of the global map
UNSIGNED_PSBT = b"psbt\xff\x01\x00\x04\x02\x00\x00\x00\x00"
SIGNED_PSBT = UNSIGNED_PSBT + b"\x01\x02\x03"
UNSIGNED_PSBT_B64 = base64.b64encode(UNSIGNED_PSBT).decode()
SIGNED_PSBT_B64 = base64.b64encode(SIGNED_PSBT).decode()

# A compact signature with header 31: recovery id 0, compressed key
SIGNATURE_B64 = base64.b64encode(bytes([31]) + bytes(range(64))).decode()

RESPONSES = {
    "getmasterxpub": {"xpub": TPUB},
    "getxpub": {"xpub": TPUB},
    "signtx": {"psbt": SIGNED_PSBT_B64, "signed": True},
    "signmessage": {"signature": SIGNATURE_B64},
    "displayaddress": {"address": "tb1qhvlqqxzg3m8lcntw9hw3ud4dlz3xkwzgjrzr68"},
    "getdescriptors": {"receive": [RECEIVE_DESC], "internal": [CHANGE_DESC]},
    "getkeypool": [
        {"desc": RECEIVE_DESC, "range": [0, 1000], "timestamp": "now", "internal": False, "keypool": True, "active": True, "watchonly": True},
        {"desc": CHANGE_DESC, "range": [0, 1000], "timestamp": "now", "internal": True, "keypool": True, "active": True, "watchonly": True},
    ],
    "setup": {"success": True},
    "wipe": {"success": True},
    "restore": {"success": True},
    "backup": {"success": True},
    "promptpin": {"success": True},
    "sendpin": {"success": True},
    "togglepassphrase": {"success": True},
    "installudevrules": {"success": True},
}


def fixture_backend(devices=None, **responses):
    """
    A fixture backend with one Trezor and the standard responses, overridden by ``responses``
    """
    r = copy.deepcopy(RESPONSES)
    r.update(responses)
    return FixtureBackend(devices=[TREZOR] if devices is None else devices, responses=r)
