"""Conversions between bytes, integers and 5-bit groups.

Everything is expressed as `bitstring` objects so the decoder can walk
the data part with a bit cursor (`ConstBitStream.pos`) instead of
counting bytes.
"""
import bitstring  # type: ignore

from .errors import PaddingError


# Bech32 spits out array of 5-bit values.  Shim here.
def u5_to_bitarray(arr: bytes) -> bitstring.BitArray:
    ret = bitstring.BitArray()
    for a in arr:
        ret += bitstring.pack("uint:5", a)
    return ret


def bitarray_to_u5(barr) -> bytes:
    """Split a bitarray whose length is a multiple of 5 into 5-bit groups."""
    assert barr.len % 5 == 0
    ret = []
    s = bitstring.ConstBitStream(barr)
    while s.pos != s.len:
        ret.append(s.read(5).uint)
    return bytes(ret)


def pad_to_u5(barr) -> bitstring.BitArray:
    """Zero-pad on the right to a multiple of 5 bits."""
    barr = bitstring.BitArray(barr)
    if barr.len % 5 != 0:
        barr.append(bitstring.Bits(length=5 - barr.len % 5))
    return barr


# Discard trailing bits, convert to bytes.
def trim_to_bytes(barr) -> bytes:
    """Drop the padding that made `barr` a multiple of 5 bits.

    The padding must be zero, anything else means the writer put data
    where there should be none.
    """
    extra = barr.len % 8
    if extra and barr[barr.len - extra:].any(True):
        raise PaddingError("Non-zero padding in last {} bits".format(extra))
    return barr[:barr.len - extra].tobytes()


def int_to_u5_bits(value: int) -> bitstring.BitArray:
    """Minimal big-endian encoding of `value` in 5-bit groups.

    Zero is the empty bitarray.
    """
    if value < 0:
        raise ValueError("Cannot encode negative integer {}".format(value))
    groups = (value.bit_length() + 4) // 5
    if groups == 0:
        return bitstring.BitArray()
    return bitstring.BitArray(uint=value, length=groups * 5)


def u5_bits_to_int(barr) -> int:
    if barr.len == 0:
        return 0
    return barr.uint
