"""Turning `Invoice` objects into BOLT #11 strings and back.

    lnbc2500u1pvjluez...
    ^ ^ ^    ^
    | | |    `- bech32 data: timestamp, tagged fields, signature, checksum
    | | `- shortened amount (optional)
    | `- network prefix
    `- lightning
"""
from hashlib import sha256
from typing import Callable, Tuple, Union
import bitstring  # type: ignore
import logging
import re

from .amount import btc_to_msat, msat_to_btc, shorten_amount, unshorten_amount
from .bech32 import Encoding, bech32_decode, bech32_encode
from .bits import bitarray_to_u5, u5_to_bitarray
from .errors import BadChecksum, InvariantViolation, SignatureInvalid, TruncatedTag, UnknownNetwork
from .fields import decode_tags, encode_tags
from .invoice import Invoice
from .networks import get_network
from .primitives import PrivateKey, PublicKey, Signer, recover_public_key


logger = logging.getLogger(__name__)

TIMESTAMP_BITS = 35
SIGNATURE_BITS = 65 * 8

URI_SCHEME = 'lightning:'

Verifier = Callable[[bytes, bytes, int], PublicKey]


def _as_signer(signer: Union[Signer, bytes, str]) -> Signer:
    if isinstance(signer, Signer):
        return signer
    return PrivateKey(signer)


def invoice_hrp(invoice: Invoice) -> str:
    hrp = 'ln' + invoice.network.prefix
    if invoice.amount_msat is not None:
        hrp += shorten_amount(msat_to_btc(invoice.amount_msat))
    return hrp


def _signing_digest(hrp: str, data: bitstring.Bits) -> bytes:
    # We actually sign the hrp, then data (padded to 8 bits with zeroes).
    return sha256(hrp.encode('ascii') + data.tobytes()).digest()


def _unsigned_data(invoice: Invoice) -> bitstring.BitArray:
    data = bitstring.BitArray(bitstring.pack('uint:35', invoice.timestamp))
    data += encode_tags(invoice.tags)
    return data


def sign_invoice(invoice: Invoice, signer: Union[Signer, bytes, str]) -> Invoice:
    """Return a copy of `invoice` carrying a signature from `signer`."""
    invoice.validate()
    signer = _as_signer(signer)
    pubkey = signer.public_key()

    # An `n` field names the key readers will check the signature against.
    if invoice.payee_node is not None and invoice.payee_node != pubkey.to_bytes():
        raise InvariantViolation("Payee node {} is not the signing key {}".format(
            invoice.payee_node.hex(), pubkey.hex()), tag='n')

    hrp = invoice_hrp(invoice)
    data = _unsigned_data(invoice)
    sig, recid = signer.sign(_signing_digest(hrp, data))
    logger.debug("Signed invoice for %s with recovery id %d", pubkey.hex(), recid)
    return invoice.replace(signature=sig + bytes([recid]), payee=pubkey)


def encode_invoice(invoice: Invoice, signer: Union[Signer, bytes, str]) -> str:
    """Sign `invoice` and serialize it as a BOLT #11 string."""
    signed = sign_invoice(invoice, signer)
    hrp = invoice_hrp(signed)
    data = _unsigned_data(signed)
    data += bitstring.Bits(signed.signature)
    return bech32_encode(hrp, bitarray_to_u5(data))


def _parse_hrp(hrp: str):
    # BOLT #11:
    #
    # A reader MUST fail if it does not understand the `prefix`.
    if not hrp.startswith('ln'):
        raise UnknownNetwork("Does not start with ln: {}".format(hrp))

    m = re.search(r'[^\d]+', hrp[2:])
    if not m or m.start() != 0:
        raise UnknownNetwork("Missing network prefix in {}".format(hrp))
    network = get_network(m.group(0))

    amountstr = hrp[2 + m.end():]
    # BOLT #11:
    #
    # A reader SHOULD indicate if amount is unspecified, otherwise it MUST
    # multiply `amount` by the `multiplier` value (if any) to derive the
    # amount required for payment.
    amount = None
    if amountstr != '':
        amount = btc_to_msat(unshorten_amount(amountstr))
    return network, amount


def decode_invoice(text: str,
                   verifier: Verifier = recover_public_key) -> Tuple[Invoice, PublicKey]:
    """Parse and verify a BOLT #11 string.

    Returns the invoice along with the public key that signed it. Unknown
    fields are carried along as `UnknownTag`s, fields the BOLT tells us
    to skip are too.
    """
    if text[:len(URI_SCHEME)].lower() == URI_SCHEME:
        text = text[len(URI_SCHEME):]

    hrp, data, encoding = bech32_decode(text)
    if encoding != Encoding.BECH32:
        raise BadChecksum("Invoices use bech32, not {}".format(encoding.name.lower()))

    network, amount = _parse_hrp(hrp)

    data = u5_to_bitarray(data)

    # Final signature 65 bytes, split it off.
    if data.len < TIMESTAMP_BITS + SIGNATURE_BITS:
        raise TruncatedTag("Too short to contain timestamp and signature",
                           offset=data.len)
    sigdecoded = data[-SIGNATURE_BITS:].tobytes()
    unsigned = data[:-SIGNATURE_BITS]

    stream = bitstring.ConstBitStream(unsigned)
    timestamp = stream.read(TIMESTAMP_BITS).uint
    tags = decode_tags(stream, network)

    pubkey = verifier(_signing_digest(hrp, unsigned), sigdecoded[0:64], sigdecoded[64])

    # BOLT #11:
    #
    # A reader MUST check that the `signature` is valid (see the `n` tagged
    # field specified below).
    inv = Invoice(network=network, timestamp=timestamp, tags=tags,
                  amount_msat=amount, signature=sigdecoded, payee=pubkey)
    if inv.payee_node is not None and inv.payee_node != pubkey.to_bytes():
        raise SignatureInvalid("Signature does not match payee {}".format(
            inv.payee_node.hex()), tag='n')

    inv.validate()
    logger.debug("Decoded %s", inv)
    return inv, pubkey


def decode(text: str) -> Invoice:
    return decode_invoice(text)[0]
