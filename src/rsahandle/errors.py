"""Error taxonomy shared by every public operation.

Each error also derives from the builtin exception a caller would reach for first, so ``except ValueError`` keeps
working around parameter and parsing mistakes.
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0


class RSAHandleError(Exception):
    """Root of all errors raised by rsahandle."""


class InvalidParameter(RSAHandleError, ValueError):
    """Unknown hash or padding identifier, unsupported key size, or a digest of the wrong length."""


class InvalidKeyType(RSAHandleError, TypeError):
    """The operation needs a different key variant, e.g. signing with a public-only key."""


class ParseError(RSAHandleError, ValueError):
    """Malformed or unsupported key encoding, or a missing/incorrect password."""


class EngineFailure(RSAHandleError, RuntimeError):
    """The RSA engine rejected the operation."""


class DecryptionError(EngineFailure):
    """Any decryption failure. Carries no detail about which check failed."""

    def __init__(self) -> None:
        super().__init__("Decryption error.")
