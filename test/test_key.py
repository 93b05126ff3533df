#! /usr/bin/env python3

import unittest

from hwiclient.common import AddressType, Chain
from hwiclient.errors import InvalidArgumentError
from hwiclient.key import (
    DerivationPath,
    H_,
    HARDENED_FLAG,
    MAX_DEPTH,
    is_hardened,
    parse_path,
    standard_path,
)
from hwiclient.marshal import encode_path

class TestParsePath(unittest.TestCase):
    def test_parse(self):
        self.assertEqual(parse_path("m/0/1h/1"), [0, 0x80000001, 1])
        self.assertEqual(parse_path("m/44'/1'/0'/0/0"), [H_(44), H_(1), H_(0), 0, 0])
        self.assertEqual(parse_path("m/84H/0h/0'"), [H_(84), H_(0), H_(0)])
        self.assertEqual(parse_path("84h/0h"), [H_(84), H_(0)])
        self.assertEqual(parse_path("m"), [])

    def test_bad_characters(self):
        for p in ["", "m/", "m/84x", "m/-1", "m//0", "m/0/a", "n/0", "m/0h'", "m/01", "m/ 0", "m/0/*"]:
            with self.subTest(path=p):
                with self.assertRaises(InvalidArgumentError):
                    parse_path(p)

    def test_index_range(self):
        self.assertEqual(parse_path("m/2147483647"), [HARDENED_FLAG - 1])
        self.assertEqual(parse_path("m/2147483647h"), [0xFFFFFFFF])
        with self.assertRaises(InvalidArgumentError):
            parse_path("m/2147483648")
        with self.assertRaises(InvalidArgumentError):
            parse_path("m/2147483648h")

    def test_depth(self):
        self.assertEqual(len(parse_path("m/" + "/".join(["0"] * MAX_DEPTH))), MAX_DEPTH)
        with self.assertRaises(InvalidArgumentError):
            parse_path("m/" + "/".join(["0"] * (MAX_DEPTH + 1)))

    def test_not_a_string(self):
        with self.assertRaises(InvalidArgumentError):
            parse_path(44)

class TestDerivationPath(unittest.TestCase):
    def test_round_trip(self):
        for p in ["m", "m/0", "m/84h/1h/0h/0/5", "m/2147483647h/2147483647", "m/48h/0h/0h/2h"]:
            with self.subTest(path=p):
                self.assertEqual(encode_path(p), p)
                self.assertEqual(DerivationPath.from_string(encode_path(p)), DerivationPath.from_string(p))

    def test_canonical_form(self):
        self.assertEqual(encode_path("m/44'/1'/0'/0/0"), "m/44h/1h/0h/0/0")
        self.assertEqual(encode_path("44H/1H"), "m/44h/1h")
        self.assertEqual(DerivationPath.from_string("m/44h/1h").to_string("'"), "m/44'/1'")

    def test_coerce(self):
        p = DerivationPath([H_(84), H_(0), H_(0)])
        self.assertIs(DerivationPath.coerce(p), p)
        self.assertEqual(DerivationPath.coerce("m/84h/0h/0h"), p)
        self.assertEqual(DerivationPath.coerce([H_(84), H_(0), H_(0)]), p)
        self.assertEqual(DerivationPath.coerce((H_(84), H_(0), H_(0))), p)
        with self.assertRaises(InvalidArgumentError):
            DerivationPath.coerce(84)
        with self.assertRaises(InvalidArgumentError):
            DerivationPath([-1])
        with self.assertRaises(InvalidArgumentError):
            DerivationPath([1 << 32])
        with self.assertRaises(InvalidArgumentError):
            DerivationPath([True])

    def test_child(self):
        p = DerivationPath.from_string("m/84h/0h/0h")
        c = p.child(0).child(7)
        self.assertEqual(str(c), "m/84h/0h/0h/0/7")
        self.assertEqual(c.depth, 5)
        self.assertEqual(len(p), 3)
        self.assertFalse(is_hardened(c.indices[-1]))
        self.assertTrue(is_hardened(c.indices[0]))

    def test_hashable(self):
        a = DerivationPath.from_string("m/84'/0'")
        b = DerivationPath.from_string("m/84h/0h")
        self.assertEqual(len({a, b}), 1)
        self.assertEqual(repr(a), "DerivationPath('m/84h/0h')")

class TestStandardPath(unittest.TestCase):
    def test_purposes(self):
        self.assertEqual(str(standard_path(AddressType.LEGACY, Chain.MAIN)), "m/44h/0h/0h")
        self.assertEqual(str(standard_path(AddressType.SH_WIT, Chain.MAIN)), "m/49h/0h/0h")
        self.assertEqual(str(standard_path(AddressType.WIT, Chain.TEST, 3)), "m/84h/1h/3h")
        self.assertEqual(str(standard_path(AddressType.TAP, Chain.REGTEST)), "m/86h/1h/0h")
        self.assertEqual(str(standard_path(AddressType.TAP, Chain.SIGNET)), "m/86h/1h/0h")

if __name__ == "__main__":
    unittest.main()
