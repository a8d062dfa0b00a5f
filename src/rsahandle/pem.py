"""PEM armor handling: the Base64-with-headers wrapping around DER key structures.

Reading tolerates explanatory text before the ``-----BEGIN`` line and RFC 1421 style headers (``Proc-Type``,
``DEK-Info``) between the armor and the payload. Writing always produces 64 column lines.
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import base64
import binascii
import typing

from rsahandle.errors import ParseError

RSA_PRIVATE_KEY = "RSA PRIVATE KEY"
PRIVATE_KEY = "PRIVATE KEY"
ENCRYPTED_PRIVATE_KEY = "ENCRYPTED PRIVATE KEY"
RSA_PUBLIC_KEY = "RSA PUBLIC KEY"
PUBLIC_KEY = "PUBLIC KEY"

PRIVATE_LABELS = (RSA_PRIVATE_KEY, PRIVATE_KEY, ENCRYPTED_PRIVATE_KEY)
PUBLIC_LABELS = (RSA_PUBLIC_KEY, PUBLIC_KEY)


class PemBlock(typing.NamedTuple):
    label: str
    headers: dict[str, str]
    der: bytes

    @property
    def encrypted(self) -> bool:
        return self.headers.get("Proc-Type", "").replace(" ", "") == "4,ENCRYPTED"


def is_pem(data: bytes) -> bool:
    """Whether `data` looks like PEM armor rather than raw DER."""
    return b"-----BEGIN " in data[:4096]


def decode(data: bytes, accepted: typing.Iterable[str] | None = None) -> PemBlock:
    """Decodes the first PEM block found in `data`.

    Args:
        data: The PEM text, as bytes.
        accepted: Labels (the text between ``BEGIN`` and the dashes) to accept. Any label when None.

    Returns:
        The block label, its headers and the DER payload.

    Raises:
        ParseError: If the armor is broken, the label is not accepted, or the payload is not Base64.
    """
    try:
        lines = data.decode("ascii").splitlines()
    except UnicodeDecodeError as exc:
        raise ParseError("PEM data must be ASCII") from exc
    itr = iter(line.strip() for line in lines)
    for line in itr:
        if line.startswith("-----BEGIN ") and line.endswith("-----"):
            label = line[11:-5]
            break
    else:
        raise ParseError("No PEM header found")
    if accepted is not None and label not in accepted:
        raise ParseError(f"PEM type {label} is not supported here")
    footer = f"-----END {label}-----"
    headers: dict[str, str] = {}
    parcel = []
    for line in itr:
        if line == footer:
            break
        if not parcel and ":" in line:
            key, _, value = line.partition(":")
            headers[key.strip()] = value.strip()
        elif line:
            parcel.append(line)
    else:
        raise ParseError(f"PEM data does not contain footer: {footer}")
    try:
        der = base64.b64decode("".join(parcel), validate=True)
    except binascii.Error as exc:
        raise ParseError("PEM payload is not valid Base64") from exc
    return PemBlock(label, headers, der)


def encode(label: str, data: bytes) -> bytes:
    """Wraps DER `data` in PEM armor with the given label."""
    payload = base64.b64encode(data).decode("ascii")
    res = f"-----BEGIN {label}-----\n"
    res += "".join(payload[i:i + 64] + "\n" for i in range(0, len(payload), 64))
    res += f"-----END {label}-----\n"
    return res.encode("ascii")
