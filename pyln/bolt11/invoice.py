from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import List, Optional, Tuple, Union
import time

from .amount import btc_to_msat, msat_to_btc
from .bech32 import CHARSET
from .errors import InvariantViolation, UnknownAddressType
from .fallback import P2SH_VERSION, FallbackAddress, check_fallback_program
from .fields import FIXED_LENGTHS, KNOWN_TYPES
from .networks import DEFAULT_EXPIRY, DEFAULT_MIN_FINAL_CLTV_EXPIRY, MAINNET, Network
from .primitives import PublicKey, ShortChannelId
from .tags import (
    Description, DescriptionHash, Expiry, Fallback, Features, MinFinalCltvExpiry,
    PayeeNode, PaymentHash, PaymentSecret, RouteHop, RoutingHint, Tag, UnknownTag,
)


MAX_TIMESTAMP = 2**35 - 1

# BOLT #11:
#
# A writer MUST NOT include more than one `d`, `h`, `n` or `x` fields,
_SINGLETONS = (PaymentSecret, PayeeNode, Expiry, MinFinalCltvExpiry, Features)


@dataclass(frozen=True)
class Invoice:
    """A BOLT #11 invoice.

    Invoices are values: use `replace()` to derive a modified copy, which
    always drops the signature since it would no longer cover the fields.
    `signature` (64 bytes plus recovery id) and `payee` are filled in by
    signing or decoding and take no part in equality.
    """
    network: Network
    timestamp: int
    tags: Tuple[Tag, ...]
    amount_msat: Optional[int] = None
    signature: Optional[bytes] = field(default=None, compare=False)
    payee: Optional[PublicKey] = field(default=None, compare=False)

    def __str__(self):
        return "Invoice[{}, amount={}{} tags=[{}]]".format(
            self.payee.hex() if self.payee else None,
            self.amount_msat, self.network.prefix,
            ", ".join([t.code + '=' + str(t) for t in self.tags])
        )

    def _get_tagged(self, cls) -> List[Tag]:
        return [t for t in self.tags if isinstance(t, cls)]

    def _get_one(self, cls):
        found = self._get_tagged(cls)
        return found[0] if found else None

    @property
    def is_signed(self) -> bool:
        return self.signature is not None

    @property
    def payment_hash(self) -> Optional[bytes]:
        tag = self._get_one(PaymentHash)
        return tag.value if tag else None

    @property
    def hexpaymenthash(self) -> Optional[str]:
        h = self.payment_hash
        return h.hex() if h is not None else None

    @property
    def payment_secret(self) -> Optional[bytes]:
        tag = self._get_one(PaymentSecret)
        return tag.value if tag else None

    @property
    def description(self) -> Optional[str]:
        tag = self._get_one(Description)
        return tag.text if tag else None

    @property
    def description_hash(self) -> Optional[bytes]:
        tag = self._get_one(DescriptionHash)
        return tag.value if tag else None

    @property
    def payee_node(self) -> Optional[bytes]:
        """The node id from the `n` field, if the writer included one."""
        tag = self._get_one(PayeeNode)
        return tag.pubkey if tag else None

    @property
    def expiry(self) -> int:
        tag = self._get_one(Expiry)
        return tag.seconds if tag else DEFAULT_EXPIRY

    @property
    def expires_at(self) -> int:
        return self.timestamp + self.expiry

    def is_expired(self, now: Optional[int] = None) -> bool:
        if now is None:
            now = int(time.time())
        return now >= self.expires_at

    @property
    def min_final_cltv_expiry(self) -> int:
        tag = self._get_one(MinFinalCltvExpiry)
        return tag.blocks if tag else DEFAULT_MIN_FINAL_CLTV_EXPIRY

    @property
    def fallbacks(self) -> List[FallbackAddress]:
        return [t.address for t in self._get_tagged(Fallback)]

    @property
    def route_hints(self) -> List[RoutingHint]:
        return self._get_tagged(RoutingHint)

    @property
    def features(self) -> Features:
        return self._get_one(Features) or Features(0)

    @property
    def unknown_tags(self) -> List[UnknownTag]:
        return self._get_tagged(UnknownTag)

    @property
    def amount_btc(self) -> Optional[Decimal]:
        if self.amount_msat is None:
            return None
        return msat_to_btc(self.amount_msat)

    def replace(self, **changes) -> "Invoice":
        changes.setdefault('signature', None)
        changes.setdefault('payee', None)
        return replace(self, **changes)

    def validate(self) -> None:
        """Check the invariants that must hold before an invoice is signed."""
        if not isinstance(self.network, Network):
            raise InvariantViolation("Unknown network {!r}".format(self.network))

        if self.amount_msat is not None:
            if isinstance(self.amount_msat, bool) or not isinstance(self.amount_msat, int):
                raise InvariantViolation("Amount must be an integer number of msat")
            if self.amount_msat < 0:
                raise InvariantViolation("Amount must be >= 0")

        if not isinstance(self.timestamp, int) or not 0 <= self.timestamp <= MAX_TIMESTAMP:
            raise InvariantViolation("Timestamp {} does not fit in 35 bits".format(self.timestamp))

        if len(self._get_tagged(PaymentHash)) != 1:
            raise InvariantViolation("Must include exactly one payment hash", tag='p')

        # BOLT #11:
        #
        # A writer MUST include either a `d` or `h` field, and MUST NOT include
        # both.
        descriptions = self._get_tagged(Description) + self._get_tagged(DescriptionHash)
        if len(descriptions) != 1:
            raise InvariantViolation("Must include exactly one of 'd' or 'h'")

        for cls in _SINGLETONS:
            if len(self._get_tagged(cls)) > 1:
                raise InvariantViolation("Duplicate '{}' tag".format(cls.code), tag=cls.code)

        for tag in self.tags:
            _validate_tag(tag, self.network)


def _check_bytes(value, length: int, tag: str) -> None:
    if not isinstance(value, bytes) or len(value) != length:
        raise InvariantViolation("Expected {} bytes".format(length), tag=tag)


def _check_uint(value, bits: int, what: str, tag: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < 2**bits:
        raise InvariantViolation("{} must fit in {} bits, got {!r}".format(what, bits, value), tag=tag)


def _validate_tag(tag: Tag, network: Network) -> None:
    if isinstance(tag, (PaymentHash, PaymentSecret, DescriptionHash)):
        _check_bytes(tag.value, 32, tag.code)
    elif isinstance(tag, PayeeNode):
        _check_bytes(tag.pubkey, 33, tag.code)
    elif isinstance(tag, Description):
        if not isinstance(tag.text, str):
            raise InvariantViolation("Description must be a string", tag=tag.code)
    elif isinstance(tag, Expiry):
        _check_uint(tag.seconds, 64, "expiry", tag.code)
    elif isinstance(tag, MinFinalCltvExpiry):
        _check_uint(tag.blocks, 64, "min_final_cltv_expiry", tag.code)
    elif isinstance(tag, Features):
        if not isinstance(tag.bits, int) or tag.bits < 0:
            raise InvariantViolation("Feature bits must be a non-negative integer", tag=tag.code)
    elif isinstance(tag, RoutingHint):
        if not tag.hops:
            raise InvariantViolation("Route hint without hops", tag=tag.code)
        for hop in tag.hops:
            _check_bytes(hop.node_id, 33, tag.code)
            _check_uint(hop.short_channel_id, 64, "short_channel_id", tag.code)
            _check_uint(hop.fee_base_msat, 32, "fee_base_msat", tag.code)
            _check_uint(hop.fee_proportional_millionths, 32,
                        "fee_proportional_millionths", tag.code)
            _check_uint(hop.cltv_expiry_delta, 16, "cltv_expiry_delta", tag.code)
    elif isinstance(tag, Fallback):
        _validate_fallback(tag.address, network)
    elif isinstance(tag, UnknownTag):
        _validate_unknown(tag)
    else:
        raise InvariantViolation("Not an invoice field: {!r}".format(tag))


def _validate_fallback(address: FallbackAddress, network: Network) -> None:
    # Readers interpret the address with the invoice's own chain parameters.
    if address.network != network:
        raise InvariantViolation("Fallback {} is for {}, not {}".format(
            address, address.network, network), tag='f')
    try:
        check_fallback_program(address.version, address.program)
    except UnknownAddressType as e:
        raise InvariantViolation(e.reason, tag='f') from e


def _validate_unknown(tag: UnknownTag) -> None:
    if not isinstance(tag.code, str) or len(tag.code) != 1 or tag.code not in CHARSET:
        raise InvariantViolation("Not a bech32 field type: {!r}".format(tag.code))
    if any(g > 31 for g in tag.data):
        raise InvariantViolation("Unknown tag must carry 5-bit groups", tag=tag.code)

    # Known letters only survive decoding as unknown when readers must skip them.
    if tag.code in FIXED_LENGTHS:
        skipped = len(tag.data) != FIXED_LENGTHS[tag.code]
    elif tag.code == Fallback.code:
        skipped = len(tag.data) == 0 or tag.data[0] > P2SH_VERSION
    else:
        skipped = tag.code not in KNOWN_TYPES
    if not skipped:
        raise InvariantViolation("Would decode as a known field", tag=tag.code)


@dataclass(frozen=True)
class InvoiceBuilder:
    """Collects fields for a new invoice.

    Every method returns a new builder, so partially built invoices can
    be shared and extended without affecting each other. Nothing is
    checked until `build()`.

        inv = (InvoiceBuilder(TESTNET)
               .payment_hash(h)
               .description('coffee')
               .amount_msat(25000)
               .build())
    """
    network: Network = MAINNET
    amount: Optional[int] = None
    date: Optional[int] = None
    tags: Tuple[Tag, ...] = ()

    def _add(self, tag: Tag) -> "InvoiceBuilder":
        return replace(self, tags=self.tags + (tag,))

    def amount_msat(self, msat: int) -> "InvoiceBuilder":
        return replace(self, amount=msat)

    def amount_btc(self, amount: Union[Decimal, str, int]) -> "InvoiceBuilder":
        return replace(self, amount=btc_to_msat(Decimal(amount)))

    def timestamp(self, ts: int) -> "InvoiceBuilder":
        return replace(self, date=ts)

    def payment_hash(self, h: bytes) -> "InvoiceBuilder":
        return self._add(PaymentHash(h))

    def payment_secret(self, s: bytes) -> "InvoiceBuilder":
        return self._add(PaymentSecret(s))

    def description(self, text: str) -> "InvoiceBuilder":
        return self._add(Description(text))

    def description_hash(self, h: Union[bytes, str]) -> "InvoiceBuilder":
        """Accepts the 32-byte hash, or the full description to hash."""
        if isinstance(h, str):
            return self._add(DescriptionHash.from_description(h))
        return self._add(DescriptionHash(h))

    def payee(self, pubkey: Union[bytes, PublicKey]) -> "InvoiceBuilder":
        if isinstance(pubkey, PublicKey):
            pubkey = pubkey.to_bytes()
        return self._add(PayeeNode(pubkey))

    def expiry(self, seconds: int) -> "InvoiceBuilder":
        return self._add(Expiry(seconds))

    def min_final_cltv_expiry(self, blocks: int) -> "InvoiceBuilder":
        return self._add(MinFinalCltvExpiry(blocks))

    def fallback(self, address: str) -> "InvoiceBuilder":
        return self._add(Fallback(FallbackAddress.from_address(address, self.network)))

    def route_hint(self, hops) -> "InvoiceBuilder":
        """`hops` are `RouteHop`s or (node_id, scid, fee_base, fee_prop, cltv) tuples."""
        route = []
        for hop in hops:
            if not isinstance(hop, RouteHop):
                node_id, scid, fee_base, fee_prop, cltv = hop
                if isinstance(scid, str):
                    scid = ShortChannelId.from_str(scid).to_int()
                elif isinstance(scid, bytes):
                    scid = int.from_bytes(scid, 'big')
                hop = RouteHop(node_id, scid, fee_base, fee_prop, cltv)
            route.append(hop)
        return self._add(RoutingHint(tuple(route)))

    def features(self, *bits: int) -> "InvoiceBuilder":
        return self._add(Features.from_bits(*bits))

    def tag(self, tag: Tag) -> "InvoiceBuilder":
        return self._add(tag)

    def build(self) -> Invoice:
        inv = Invoice(
            network=self.network,
            timestamp=int(time.time()) if self.date is None else self.date,
            tags=self.tags,
            amount_msat=self.amount,
        )
        inv.validate()
        return inv
