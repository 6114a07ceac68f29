"""OpenPGP ASCII armor (RFC 4880, section 6) for raw ciphertext.

Secret files hold binary OpenPGP messages. They are wrapped in a
``PGP MESSAGE`` armor envelope for JSON transport; the bytes themselves are
never inspected.
"""

import base64
import binascii

ARMOR_LABEL = "PGP MESSAGE"
LINE_LENGTH = 64

CRC24_INIT = 0xB704CE
CRC24_POLY = 0x1864CFB


class ArmorError(ValueError):
    """Raised when armored text is malformed or fails its checksum."""


def crc24(data: bytes) -> int:
    """Compute the OpenPGP CRC-24 checksum of ``data``."""
    crc = CRC24_INIT
    for byte in data:
        crc ^= byte << 16
        for _ in range(8):
            crc <<= 1
            if crc & 0x1000000:
                crc ^= CRC24_POLY
    return crc & 0xFFFFFF


def armor(raw: bytes, label: str = ARMOR_LABEL) -> str:
    """Wrap raw bytes in an ASCII armor envelope.

    Args:
        raw: Binary OpenPGP data, e.g. the contents of a ``.gpg`` file
        label: Armor block type

    Returns:
        Armored text, terminated by a newline
    """
    body = base64.b64encode(raw).decode("ascii")
    checksum = base64.b64encode(crc24(raw).to_bytes(3, "big")).decode("ascii")

    lines = [f"-----BEGIN {label}-----", ""]
    lines.extend(body[i : i + LINE_LENGTH] for i in range(0, len(body), LINE_LENGTH))
    lines.append(f"={checksum}")
    lines.append(f"-----END {label}-----")
    return "\n".join(lines) + "\n"


def dearmor(text: str, label: str = ARMOR_LABEL) -> bytes:
    """Decode an ASCII armor envelope back to raw bytes.

    Armor headers (``Key: value`` lines before the blank separator) are
    accepted and ignored. The CRC-24 line is optional, as in RFC 4880, but is
    verified when present.

    Raises:
        ArmorError: If the envelope is malformed or the checksum mismatches
    """
    lines = [line.rstrip("\r") for line in text.strip().splitlines()]
    begin, end = f"-----BEGIN {label}-----", f"-----END {label}-----"
    if len(lines) < 2 or lines[0] != begin or lines[-1] != end:
        raise ArmorError(f"missing {label} armor header or footer")

    inner = lines[1:-1]
    if "" in inner:
        inner = inner[inner.index("") + 1 :]
    elif inner and ":" in inner[0]:
        raise ArmorError("armor headers must be followed by a blank line")

    checksum = None
    if inner and inner[-1].startswith("="):
        checksum = inner.pop()[1:]

    try:
        raw = base64.b64decode("".join(inner), validate=True)
    except binascii.Error as e:
        raise ArmorError(f"invalid armor body: {e}") from e

    if checksum is not None:
        try:
            expected = int.from_bytes(base64.b64decode(checksum, validate=True), "big")
        except binascii.Error as e:
            raise ArmorError(f"invalid armor checksum: {e}") from e
        if expected != crc24(raw):
            raise ArmorError("armor checksum mismatch")

    return raw
