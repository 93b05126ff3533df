#! /usr/bin/env python3

import threading
import time
import unittest

from hwiclient import marshal
from hwiclient.client import HWIClient
from hwiclient.commands import bind, enumerate
from hwiclient.common import AddressType, Chain
from hwiclient.errors import (
    ActionCanceledError,
    DeviceConnError,
    InvalidArgumentError,
    UnsupportedCommandError,
)
from hwiclient.key import DerivationPath
from hwiclient.types import Binding, Status

from helpers import (
    CHANGE_DESC,
    RECEIVE_DESC,
    SIGNATURE_B64,
    SIGNED_PSBT,
    TPUB,
    TREZOR,
    UNSIGNED_PSBT,
    UNSIGNED_PSBT_B64,
    fixture_backend,
)

class TestEnumerate(unittest.TestCase):
    def test_one_device(self):
        backend = fixture_backend()
        devices = enumerate(backend=backend)
        self.assertEqual(len(devices), 1)
        self.assertTrue(devices[0].device_type)
        self.assertTrue(devices[0].path)

    def test_idempotent(self):
        backend = fixture_backend()
        self.assertEqual(enumerate(backend=backend), enumerate(backend=backend))

    def test_no_devices(self):
        self.assertEqual(enumerate(backend=fixture_backend(devices=[])), [])

class ClientTestCase(unittest.TestCase):
    def setUp(self):
        self.backend = fixture_backend()
        self.device = enumerate(backend=self.backend)[0]
        self.client = bind(self.device, chain=Chain.TEST, backend=self.backend)

    def tearDown(self):
        self.client.close()

    def last_request(self):
        return self.backend.calls[-1][1]

class TestOperations(ClientTestCase):
    def test_bind_does_not_touch_device(self):
        self.assertEqual(self.backend.commands(), ["enumerate"])
        self.assertEqual(self.client.device_type, "trezor")
        self.assertEqual(self.client.path, TREZOR["path"])
        self.assertEqual(self.client.chain, Chain.TEST)
        self.assertFalse(self.client.expert)

    def test_get_master_xpub(self):
        xpub = self.client.get_master_xpub(AddressType.TAP, 1)
        self.assertEqual(xpub.xpub, TPUB)
        self.assertEqual(self.last_request().args, {"addr_type": AddressType.TAP, "account": 1})

    def test_get_xpub(self):
        self.assertEqual(self.client.get_xpub("m/84'/1'/0'").xpub, TPUB)
        self.assertEqual(self.last_request().args, {"path": "m/84h/1h/0h", "expert": False})
        binding, _ = self.backend.calls[-1]
        self.assertEqual(binding.chain, Chain.TEST)

    def test_get_xpub_bad_path(self):
        with self.assertRaises(InvalidArgumentError):
            self.client.get_xpub("m/84'/1'/zero'")
        with self.assertRaises(InvalidArgumentError):
            self.client.get_xpub("m/84'/1'/0'/-5")
        # Nothing was sent to the device
        self.assertEqual(self.backend.commands(), ["enumerate"])

    def test_sign_tx(self):
        for psbt in [UNSIGNED_PSBT, UNSIGNED_PSBT_B64]:
            with self.subTest(psbt=psbt):
                result = self.client.sign_tx(psbt)
                self.assertEqual(result.psbt, SIGNED_PSBT)
                self.assertTrue(result.signed)
                self.assertEqual(self.last_request().args, {"psbt": UNSIGNED_PSBT_B64})

    def test_sign_tx_not_a_psbt(self):
        with self.assertRaises(InvalidArgumentError):
            self.client.sign_tx(b"\x02\x00\x00\x00\x01")
        self.assertEqual(self.backend.commands(), ["enumerate"])

    def test_sign_message(self):
        sig = self.client.sign_message("test", "m/44'/1'/0'/0/0")
        self.assertEqual(sig.signature, SIGNATURE_B64)
        self.assertEqual(self.last_request().args, {"message": "test", "path": "m/44h/1h/0h/0/0"})

    def test_get_keypool(self):
        keypool = self.client.get_keypool(0, 1000)
        self.assertEqual([k.desc for k in keypool], [RECEIVE_DESC, CHANGE_DESC])
        self.assertEqual(self.last_request().args, {
            "path": None,
            "internal": False,
            "keypool": True,
            "addr_type": AddressType.WIT,
            "addr_all": False,
            "account": 0,
            "start": 0,
            "end": 1000,
        })

    def test_get_keypool_with_path(self):
        self.client.get_keypool(0, 20, path="m/84h/1h/0h/1", internal=True, keypool=False)
        args = self.last_request().args
        self.assertEqual(args["path"], "m/84h/1h/0h/1/*")
        self.assertTrue(args["internal"])
        self.assertFalse(args["keypool"])

    def test_get_keypool_bad_arguments(self):
        with self.assertRaises(InvalidArgumentError):
            self.client.get_keypool(10, 0)
        with self.assertRaises(InvalidArgumentError):
            self.client.get_keypool(0, 10, path="m/84h/1h/0h/0", addr_all=True)
        with self.assertRaises(InvalidArgumentError):
            self.client.get_keypool(0, 10, internal=True, addr_all=True)
        with self.assertRaises(InvalidArgumentError):
            self.client.get_keypool(0, 10, account=-1)
        self.assertEqual(self.backend.commands(), ["enumerate"])

    def test_get_descriptors(self):
        d = self.client.get_descriptors(account=2)
        self.assertEqual(d.receive, (RECEIVE_DESC,))
        self.assertEqual(d.internal, (CHANGE_DESC,))
        self.assertEqual(self.last_request().args, {"account": 2})

    def test_display_address(self):
        self.client.display_address("m/84h/1h/0h/0/0")
        self.assertEqual(self.last_request().args, {"path": "m/84h/1h/0h/0/0", "desc": None, "addr_type": AddressType.WIT})
        self.client.display_address(DerivationPath.from_string("m/49h/1h/0h/0/0"), AddressType.SH_WIT)
        self.assertEqual(self.last_request().args, {"path": "m/49h/1h/0h/0/0", "desc": None, "addr_type": AddressType.SH_WIT})
        address = self.client.display_address(RECEIVE_DESC)
        self.assertEqual(address.address, "tb1qhvlqqxzg3m8lcntw9hw3ud4dlz3xkwzgjrzr68")
        self.assertEqual(self.last_request().args, {"path": None, "desc": RECEIVE_DESC})

    def test_display_address_bad_descriptor(self):
        with self.assertRaises(InvalidArgumentError):
            self.client.display_address("wpkh(")
        with self.assertRaises(InvalidArgumentError):
            self.client.display_address_with_desc("m/84h/1h/0h/0/0")

    def test_device_management(self):
        self.assertEqual(self.client.setup_device("satoshi", "hunter2"), Status(True))
        self.assertEqual(self.last_request().args, {"label": "satoshi", "backup_passphrase": "hunter2"})
        self.assertEqual(self.client.restore_device("satoshi", 12), Status(True))
        self.assertEqual(self.last_request().args, {"label": "satoshi", "word_count": 12})
        self.assertEqual(self.client.backup_device(), Status(True))
        self.assertEqual(self.client.wipe_device(), Status(True))
        self.assertEqual(self.client.toggle_passphrase(), Status(True))
        self.assertEqual(self.client.prompt_pin(), Status(True))
        self.assertEqual(self.client.send_pin("1597"), Status(True))
        self.assertEqual(self.last_request().args, {"pin": "1597"})
        self.assertEqual(self.backend.commands()[1:], ["setup", "restore", "backup", "wipe", "togglepassphrase", "promptpin", "sendpin"])

    def test_device_management_bad_arguments(self):
        with self.assertRaises(InvalidArgumentError):
            self.client.restore_device(word_count=16)
        with self.assertRaises(InvalidArgumentError):
            self.client.send_pin("0000")

    def test_account_path(self):
        self.assertEqual(str(self.client.account_path()), "m/84h/1h/0h")
        self.assertEqual(str(self.client.account_path(AddressType.LEGACY, 5)), "m/44h/1h/5h")
        with self.assertRaises(InvalidArgumentError):
            self.client.account_path(account=1 << 31)

class TestFailures(ClientTestCase):
    def test_sign_message_declined(self):
        self.backend.responses["signmessage"] = {"error": "Sign message canceled by user", "code": -14}
        with self.assertRaises(ActionCanceledError) as cm:
            self.client.sign_message("test", "m/44'/1'/0'/0/0")
        self.assertEqual(cm.exception.get_code(), -14)

    def test_disconnected(self):
        self.assertEqual(self.client.get_xpub("m/0").xpub, TPUB)
        self.backend.disconnect(TREZOR["path"])
        with self.assertRaises(DeviceConnError):
            self.client.get_xpub("m/0")
        with self.assertRaises(DeviceConnError):
            self.client.sign_message("test", "m/0")
        self.assertEqual(enumerate(backend=self.backend), [])

    def test_unsupported(self):
        del self.backend.responses["togglepassphrase"]
        with self.assertRaises(UnsupportedCommandError):
            self.client.toggle_passphrase()

    def test_unbound_path(self):
        client = HWIClient(Binding("trezor", "webusb:000:9:9"), self.backend)
        with self.assertRaises(DeviceConnError):
            client.wipe_device()

class TestLifecycle(unittest.TestCase):
    def test_close(self):
        backend = fixture_backend()
        client = bind(TREZOR["path"], device_type="trezor", backend=backend)
        client.close()
        client.close()
        self.assertTrue(client.closed)
        self.assertEqual(backend.released, [client.binding])
        with self.assertRaises(DeviceConnError):
            client.get_xpub("m/0")
        self.assertEqual(backend.commands(), [])

    def test_context_manager(self):
        backend = fixture_backend()
        with bind(TREZOR["path"], device_type="trezor", backend=backend) as client:
            client.wipe_device()
        self.assertTrue(client.closed)
        self.assertEqual(len(backend.released), 1)

    def test_bad_chain(self):
        with self.assertRaises(InvalidArgumentError):
            HWIClient(Binding("trezor", TREZOR["path"], chain="test"), fixture_backend())

    def test_password_not_in_repr(self):
        binding = Binding("trezor", TREZOR["path"], password="hunter2")
        self.assertNotIn("hunter2", repr(binding))
        self.assertNotIn("hunter2", repr(HWIClient(binding, fixture_backend())))

class TestSerialization(unittest.TestCase):
    def test_calls_do_not_overlap(self):
        state = {"active": 0, "max": 0}
        lock = threading.Lock()

        def slow_xpub(binding, request):
            with lock:
                state["active"] += 1
                state["max"] = max(state["max"], state["active"])
            time.sleep(0.01)
            with lock:
                state["active"] -= 1
            return {"xpub": TPUB}

        backend = fixture_backend(getxpub=slow_xpub)
        clients = [bind(TREZOR["path"], device_type="trezor", backend=backend) for _ in range(4)]
        threads = [threading.Thread(target=c.get_xpub, args=("m/0",)) for c in clients]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(state["max"], 1)
        self.assertEqual(backend.commands(), ["getxpub"] * 4)

    def test_close_while_call_waits(self):
        backend = fixture_backend()
        client = bind(TREZOR["path"], device_type="trezor", backend=backend)
        errors = []

        def get_xpub():
            try:
                client.get_xpub("m/0")
            except DeviceConnError as e:
                errors.append(e)

        with marshal.invocation_lock():
            t = threading.Thread(target=get_xpub)
            t.start()
            time.sleep(0.05)
            client.close()
        t.join()
        self.assertEqual(len(errors), 1)
        self.assertEqual(backend.commands(), [])
        self.assertEqual(backend.released, [client.binding])

if __name__ == "__main__":
    unittest.main()
