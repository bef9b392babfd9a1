# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""Building, encoding, signing and submitting Aptos transactions."""
