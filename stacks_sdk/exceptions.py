# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Errors raised by the operation workflow.

Lower layers define their own errors next to the code that raises them
(``ApiError`` in ``async_client``, ``ParseAddressError`` in ``address``,
``ClarityError`` in ``clarity``, ``DeploymentError`` in ``contract_deployer``).
The three errors here are the ones callers of ``operations`` handle.
"""

from typing import Any, Optional


class InvalidRequest(Exception):
    """An operation request failed local validation and was never submitted."""


class SubmissionFailed(Exception):
    """The node rejected a transaction, or it could not be delivered."""

    message: str

    def __init__(self, message: str):
        # Call the base class constructor with the parameters it needs
        super().__init__(message)
        self.message = message


class QueryFailed(Exception):
    """A read-only query could not be answered or its result could not be decoded."""

    cause: Optional[Any]

    def __init__(self, message: str, cause: Optional[Any] = None):
        super().__init__(message)
        self.cause = cause
