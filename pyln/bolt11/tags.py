"""The tagged fields an invoice can carry.

Each known field is its own frozen dataclass with a `code` naming its
BOLT #11 letter. Anything the decoder does not understand is kept as an
`UnknownTag` with its raw 5-bit groups, so it can be written back out
unchanged.
"""
from dataclasses import dataclass
from hashlib import sha256
from io import BytesIO
from typing import ClassVar, Tuple, Union
import struct

from .errors import MalformedRouteHint
from .fallback import FallbackAddress
from .primitives import ShortChannelId


@dataclass(frozen=True)
class PaymentHash:
    code: ClassVar[str] = 'p'
    value: bytes


@dataclass(frozen=True)
class PaymentSecret:
    code: ClassVar[str] = 's'
    value: bytes


@dataclass(frozen=True)
class Description:
    code: ClassVar[str] = 'd'
    text: str


@dataclass(frozen=True)
class DescriptionHash:
    code: ClassVar[str] = 'h'
    value: bytes

    @classmethod
    def from_description(cls, text: str) -> "DescriptionHash":
        return cls(sha256(text.encode('utf-8')).digest())


@dataclass(frozen=True)
class PayeeNode:
    code: ClassVar[str] = 'n'
    pubkey: bytes


@dataclass(frozen=True)
class Expiry:
    code: ClassVar[str] = 'x'
    seconds: int


@dataclass(frozen=True)
class MinFinalCltvExpiry:
    code: ClassVar[str] = 'c'
    blocks: int


@dataclass(frozen=True)
class Fallback:
    code: ClassVar[str] = 'f'
    address: FallbackAddress


@dataclass(frozen=True)
class RouteHop:
    length: ClassVar[int] = 33 + 8 + 4 + 4 + 2

    node_id: bytes
    short_channel_id: int
    fee_base_msat: int
    fee_proportional_millionths: int
    cltv_expiry_delta: int

    @property
    def scid(self) -> ShortChannelId:
        return ShortChannelId.from_int(self.short_channel_id)

    @classmethod
    def from_bytes(cls, b) -> "RouteHop":
        node_id = b.read(33)
        short_channel_id, fee_base_msat, fee_prop, cltv_expiry_delta = struct.unpack(
            "!QIIH", b.read(18))
        return cls(node_id=node_id, short_channel_id=short_channel_id,
                   fee_base_msat=fee_base_msat,
                   fee_proportional_millionths=fee_prop,
                   cltv_expiry_delta=cltv_expiry_delta)

    def to_bytes(self) -> bytes:
        return self.node_id + struct.pack(
            "!QIIH", self.short_channel_id, self.fee_base_msat,
            self.fee_proportional_millionths, self.cltv_expiry_delta
        )

    def __str__(self):
        return ("RouteHop<node_id={}, short_channel_id={}, fee_base_msat={}, "
                "fee_prop={}, cltv_expiry_delta={}>").format(
                    self.node_id.hex(), self.scid, self.fee_base_msat,
                    self.fee_proportional_millionths, self.cltv_expiry_delta)


@dataclass(frozen=True)
class RoutingHint:
    """One private route, as a sequence of hops towards the payee."""
    code: ClassVar[str] = 'r'
    hops: Tuple[RouteHop, ...]

    @classmethod
    def from_bytes(cls, b: bytes) -> "RoutingHint":
        if len(b) % RouteHop.length != 0:
            raise MalformedRouteHint(
                "byte string is not a multiple of the route hint size: {}".format(len(b)),
                tag=cls.code)

        stream = BytesIO(b)
        return cls(tuple(RouteHop.from_bytes(stream)
                         for _ in range(len(b) // RouteHop.length)))

    def to_bytes(self) -> bytes:
        return b''.join([rh.to_bytes() for rh in self.hops])

    def __str__(self):
        return "RoutingHint[{}]".format(", ".join([str(rh) for rh in self.hops]))


@dataclass(frozen=True)
class Features:
    code: ClassVar[str] = '9'
    bits: int

    @classmethod
    def from_bits(cls, *bits: int) -> "Features":
        return cls(sum(1 << b for b in set(bits)))

    def has_feature(self, bit: int) -> bool:
        return bool((self.bits >> bit) & 1)


@dataclass(frozen=True)
class UnknownTag:
    code: str
    data: bytes

    def __str__(self):
        return "UnknownTag[{}, {} groups]".format(self.code, len(self.data))


Tag = Union[
    PaymentHash, PaymentSecret, Description, DescriptionHash, PayeeNode,
    Expiry, MinFinalCltvExpiry, Fallback, RoutingHint, Features, UnknownTag,
]
