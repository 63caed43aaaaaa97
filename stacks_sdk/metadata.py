# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Client identification for requests sent to Stacks nodes and the Hiro API.

Every request made by ``RestClient`` carries an ``x-stacks-client`` header
naming this SDK and its installed version, so node operators can tell SDK
traffic apart in their logs.

Examples:
    Building headers by hand::

        import httpx
        from stacks_sdk.metadata import Metadata

        headers = {Metadata.STACKS_HEADER: Metadata.get_stacks_header_val()}
        response = httpx.get("https://api.testnet.hiro.so/v2/info", headers=headers)
"""

import importlib.metadata as metadata

# Package name constant for metadata lookup
PACKAGE_NAME = "stacks-sdk"


class Metadata:
    """SDK identification header name and value."""

    STACKS_HEADER = "x-stacks-client"

    @staticmethod
    def get_stacks_header_val() -> str:
        """The header value, ``stacks-python-sdk/{version}``.

        Raises:
            PackageNotFoundError: If the package is not installed, e.g. when
                running from a source checkout without ``pip install -e .``.
        """
        version = metadata.version(PACKAGE_NAME)
        return f"stacks-python-sdk/{version}"
