"""Tagged fields: `type` (5 bits), `data_length` (10 bits), `data`.

`data_length` counts 5-bit groups, so a field carries at most 1023 of
them. Payloads that are not a multiple of 5 bits are zero-padded.
"""
from typing import Tuple
import bitstring  # type: ignore
import logging

from .bech32 import CHARSET
from .bits import bitarray_to_u5, int_to_u5_bits, pad_to_u5, trim_to_bytes, u5_bits_to_int, u5_to_bitarray
from .errors import InvariantViolation, InvoiceError, MalformedField, TruncatedTag
from .fallback import P2SH_VERSION, parse_fallback
from .networks import Network
from .tags import (
    Description, DescriptionHash, Expiry, Fallback, Features, MinFinalCltvExpiry,
    PayeeNode, PaymentHash, PaymentSecret, RoutingHint, Tag, UnknownTag,
)


logger = logging.getLogger(__name__)

MAX_DATA_LENGTH = 1023

# BOLT #11:
#
# A reader MUST skip over ... a `p`, `h`, `s` or `n` field that does NOT
# have `data_length`s of 52, 52, 52 or 53, respectively.
FIXED_LENGTHS = {
    'p': 52,
    'h': 52,
    's': 52,
    'n': 53,
}

# Field letters decode_tag understands.
KNOWN_TYPES = 'psdhnxc9rf'


# Tagged field containing BitArray
def tagged(char: str, l) -> bitstring.BitArray:
    if len(char) != 1 or char not in CHARSET:
        raise InvariantViolation("Not a bech32 field type: {!r}".format(char))
    # Tagged fields need to be zero-padded to 5 bits.
    l = pad_to_u5(l)
    groups = l.len // 5
    if groups > MAX_DATA_LENGTH:
        raise InvariantViolation(
            "Field is {} groups long, at most {} fit".format(groups, MAX_DATA_LENGTH),
            tag=char)
    return bitstring.pack("uint:5, uint:5, uint:5",
                          CHARSET.find(char), groups // 32, groups % 32) + l


# Tagged field containing bytes
def tagged_bytes(char: str, l: bytes) -> bitstring.BitArray:
    return tagged(char, bitstring.BitArray(l))


# Try to pull out tagged data: returns tag, tagged data and the offset it started at.
def pull_tagged(stream: bitstring.ConstBitStream) -> Tuple[str, bitstring.Bits, int]:
    start = stream.pos
    if stream.len - stream.pos < 15:
        raise TruncatedTag("Only {} bits left for a field header".format(
            stream.len - stream.pos), offset=start)

    tag = CHARSET[stream.read(5).uint]
    length = stream.read(5).uint * 32 + stream.read(5).uint
    if stream.len - stream.pos < length * 5:
        raise TruncatedTag("Field declares {} groups but only {} bits remain".format(
            length, stream.len - stream.pos), tag=tag, offset=start)

    return (tag, stream.read(length * 5), start)


def encode_tag(tag: Tag) -> bitstring.BitArray:
    if isinstance(tag, (PaymentHash, PaymentSecret, DescriptionHash)):
        return tagged_bytes(tag.code, tag.value)
    elif isinstance(tag, Description):
        return tagged_bytes(tag.code, tag.text.encode('utf-8'))
    elif isinstance(tag, PayeeNode):
        return tagged_bytes(tag.code, tag.pubkey)
    elif isinstance(tag, Expiry):
        return tagged(tag.code, int_to_u5_bits(tag.seconds))
    elif isinstance(tag, MinFinalCltvExpiry):
        return tagged(tag.code, int_to_u5_bits(tag.blocks))
    elif isinstance(tag, Features):
        return tagged(tag.code, int_to_u5_bits(tag.bits))
    elif isinstance(tag, Fallback):
        return tagged(tag.code, tag.address.to_bits())
    elif isinstance(tag, RoutingHint):
        return tagged_bytes(tag.code, tag.to_bytes())
    elif isinstance(tag, UnknownTag):
        return tagged(tag.code, u5_to_bitarray(tag.data))
    raise TypeError("Not an invoice field: {!r}".format(tag))


def _unknown(tag: str, tagdata) -> UnknownTag:
    return UnknownTag(tag, bitarray_to_u5(tagdata))


def decode_tag(tag: str, tagdata, network: Network) -> Tag:
    """Interpret the payload of a single field.

    Fields the BOLT tells readers to skip come back as `UnknownTag`.
    """
    data_length = tagdata.len // 5
    if tag in FIXED_LENGTHS and data_length != FIXED_LENGTHS[tag]:
        logger.debug("Skipping '%s' field with data_length %d", tag, data_length)
        return _unknown(tag, tagdata)

    if tag == 'p':
        return PaymentHash(trim_to_bytes(tagdata))
    elif tag == 's':
        return PaymentSecret(trim_to_bytes(tagdata))
    elif tag == 'h':
        return DescriptionHash(trim_to_bytes(tagdata))
    elif tag == 'n':
        return PayeeNode(trim_to_bytes(tagdata))
    elif tag == 'd':
        try:
            return Description(trim_to_bytes(tagdata).decode('utf-8'))
        except UnicodeDecodeError as e:
            raise MalformedField("Description is not valid UTF-8: {}".format(e), tag=tag) from e
    elif tag == 'x':
        return Expiry(u5_bits_to_int(tagdata))
    elif tag == 'c':
        return MinFinalCltvExpiry(u5_bits_to_int(tagdata))
    elif tag == '9':
        return Features(u5_bits_to_int(tagdata))
    elif tag == 'r':
        return RoutingHint.from_bytes(trim_to_bytes(tagdata))
    elif tag == 'f':
        # BOLT #11:
        #
        # A reader MUST skip over ... an `f` field with unknown `version`.
        if tagdata.len < 5 or tagdata[0:5].uint > P2SH_VERSION:
            logger.debug("Skipping fallback with unknown version")
            return _unknown(tag, tagdata)
        return Fallback(parse_fallback(tagdata, network))

    logger.debug("Keeping unknown field '%s' (%d groups)", tag, data_length)
    return _unknown(tag, tagdata)


def encode_tags(tags) -> bitstring.BitArray:
    data = bitstring.BitArray()
    for tag in tags:
        data += encode_tag(tag)
    return data


def decode_tags(stream: bitstring.ConstBitStream, network: Network) -> Tuple[Tag, ...]:
    """Read fields from the cursor until it is exhausted."""
    tags = []
    while stream.pos != stream.len:
        tag, tagdata, start = pull_tagged(stream)
        try:
            tags.append(decode_tag(tag, tagdata, network))
        except InvoiceError as e:
            # Errors from helpers don't know where they are, we do.
            if e.offset is None:
                raise type(e)(e.reason, tag=tag, offset=start) from e
            raise
    return tuple(tags)
