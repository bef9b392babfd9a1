# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

import importlib.metadata as metadata
import unittest
from unittest.mock import patch

# constants
PACKAGE_NAME = "aptos_txn"


class Metadata:
    APTOS_HEADER = "x-aptos-client"

    @staticmethod
    def get_aptos_header_val():
        try:
            version = metadata.version(PACKAGE_NAME)
        except metadata.PackageNotFoundError:
            version = "unknown"
        return f"aptos-txn-python/{version}"


class Test(unittest.TestCase):
    def test_header_value(self):
        self.assertTrue(Metadata.get_aptos_header_val().startswith("aptos-txn-python/"))

    def test_uninstalled_package(self):
        with patch(
            "importlib.metadata.version", side_effect=metadata.PackageNotFoundError
        ):
            self.assertEqual(Metadata.get_aptos_header_val(), "aptos-txn-python/unknown")


if __name__ == "__main__":
    unittest.main()
