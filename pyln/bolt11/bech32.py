# Copyright (c) 2017, 2020 Pieter Wuille
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in
# all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN
# THE SOFTWARE.

"""Bech32 and bech32m strings, and segwit addresses.

Unlike BIP-173 addresses, invoices are not limited to 90 characters, so
no length limit is enforced on `bech32_decode`.
"""
from enum import Enum
from typing import Iterable, List, Tuple

from .errors import BadChecksum, BadCharset, PaddingError, UnknownAddressType


CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
BECH32M_CONST = 0x2bc830a3


class Encoding(Enum):
    BECH32 = 1
    BECH32M = BECH32M_CONST


def bech32_polymod(values: Iterable[int]) -> int:
    """Internal function that computes the Bech32 checksum."""
    generator = [0x3b6a57b2, 0x26508e6d, 0x1ea119fa, 0x3d4233dd, 0x2a1462b3]
    chk = 1
    for value in values:
        top = chk >> 25
        chk = (chk & 0x1ffffff) << 5 ^ value
        for i in range(5):
            chk ^= generator[i] if ((top >> i) & 1) else 0
    return chk


def bech32_hrp_expand(hrp: str) -> bytes:
    """Expand the HRP into values for checksum computation."""
    return bytes([ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp])


def bech32_verify_checksum(hrp: str, data: bytes):
    """Return the encoding whose constant matches, or None."""
    const = bech32_polymod(bech32_hrp_expand(hrp) + data)
    for encoding in Encoding:
        if const == encoding.value:
            return encoding
    return None


def bech32_create_checksum(hrp: str, data: bytes,
                           encoding: Encoding = Encoding.BECH32) -> bytes:
    """Compute the checksum values given HRP and data."""
    values = bech32_hrp_expand(hrp) + data
    polymod = bech32_polymod(values + bytes([0, 0, 0, 0, 0, 0])) ^ encoding.value
    return bytes([(polymod >> 5 * (5 - i)) & 31 for i in range(6)])


def bech32_encode(hrp: str, data: bytes,
                  encoding: Encoding = Encoding.BECH32) -> str:
    """Compute a Bech32 string given HRP and data values."""
    data = bytes(data)
    combined = data + bech32_create_checksum(hrp, data, encoding)
    return hrp + '1' + ''.join([CHARSET[d] for d in combined])


def bech32_decode(bech: str) -> Tuple[str, bytes, Encoding]:
    """Validate a Bech32 string, and determine HRP, data and encoding."""
    if any(ord(x) < 33 or ord(x) > 126 for x in bech):
        raise BadCharset("Not a bech32-encoded string: {}".format(bech))
    if bech.lower() != bech and bech.upper() != bech:
        raise BadCharset("Mixed case in bech32 string: {}".format(bech))

    bech = bech.lower()
    pos = bech.rfind('1')
    if pos < 1 or pos + 7 > len(bech):
        raise BadCharset("Could not locate hrp separator '1' in {}".format(bech))

    for i, x in enumerate(bech[pos + 1:]):
        if x not in CHARSET:
            raise BadCharset("Non-bech32 character {!r} at position {}".format(
                x, pos + 1 + i))

    hrp = bech[:pos]
    data = bytes([CHARSET.find(x) for x in bech[pos + 1:]])
    encoding = bech32_verify_checksum(hrp, data)
    if encoding is None:
        raise BadChecksum("Checksum verification failed for {}".format(bech))

    return (hrp, data[:-6], encoding)


def convertbits(data: Iterable[int], frombits: int, tobits: int,
                pad: bool = True) -> List[int]:
    """General power-of-2 base conversion."""
    acc = 0
    bits = 0
    ret = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1
    for value in data:
        if value < 0 or (value >> frombits):
            raise ValueError("Value {} does not fit in {} bits".format(value, frombits))
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)
    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits:
        raise PaddingError("More than {} bits of padding".format(frombits - 1))
    elif (acc << (tobits - bits)) & maxv:
        raise PaddingError("Non-zero padding bits")
    return ret


def decode_segwit_address(address: str) -> Tuple[str, int, bytes]:
    """Decode a segwit address into (hrp, witness version, program).

    The caller decides whether the hrp is acceptable.
    """
    hrp, data, encoding = bech32_decode(address)
    if len(data) < 1:
        raise UnknownAddressType("Empty witness program in {}".format(address))

    version = data[0]
    program = bytes(convertbits(data[1:], 5, 8, False))
    if version <= 16:
        check_witness_program(version, program)
        expected = Encoding.BECH32 if version == 0 else Encoding.BECH32M
        if encoding != expected:
            raise BadChecksum("Witness version {} must use {}".format(
                version, expected.name.lower()))
    return hrp, version, program


def encode_segwit_address(hrp: str, version: int, program: bytes) -> str:
    """Encode a segwit address, bech32 for v0 and bech32m for later versions."""
    check_witness_program(version, program)
    encoding = Encoding.BECH32 if version == 0 else Encoding.BECH32M
    return bech32_encode(hrp, bytes([version] + convertbits(program, 8, 5)),
                         encoding)


def check_witness_program(version: int, program: bytes) -> None:
    if len(program) < 2 or len(program) > 40:
        raise UnknownAddressType(
            "Invalid witness program length {}".format(len(program)))
    if version == 0 and len(program) not in (20, 32):
        raise UnknownAddressType(
            "Invalid v0 witness program length {}".format(len(program)))
