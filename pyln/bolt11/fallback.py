"""On-chain fallback addresses carried in the `f` field.

BOLT #11 reuses the witness version slot to tell legacy addresses apart:
0-16 are segwit witness versions, 17 is P2PKH and 18 is P2SH.
"""
from dataclasses import dataclass
from enum import Enum
import base58
import bitstring  # type: ignore

from .bech32 import decode_segwit_address, encode_segwit_address, check_witness_program
from .bits import pad_to_u5, trim_to_bytes
from .errors import (
    BadChecksum, NetworkMismatch, UnknownAddressType, UnsupportedWitnessVersion
)
from .networks import Network, is_segwit_hrp


P2PKH_VERSION = 17
P2SH_VERSION = 18


class AddressKind(Enum):
    WITNESS = 'witness'
    P2PKH = 'p2pkh'
    P2SH = 'p2sh'


@dataclass(frozen=True)
class FallbackAddress:
    network: Network
    version: int
    program: bytes

    @property
    def kind(self) -> AddressKind:
        if self.version == P2PKH_VERSION:
            return AddressKind.P2PKH
        elif self.version == P2SH_VERSION:
            return AddressKind.P2SH
        return AddressKind.WITNESS

    @property
    def type_name(self) -> str:
        if self.kind != AddressKind.WITNESS:
            return self.kind.name
        if self.version == 0:
            return 'P2WPKH' if len(self.program) == 20 else 'P2WSH'
        if self.version == 1 and len(self.program) == 32:
            return 'P2TR'
        return 'WITNESS'

    @property
    def address(self) -> str:
        if self.kind == AddressKind.P2PKH:
            prefix = self.network.p2pkh
        elif self.kind == AddressKind.P2SH:
            prefix = self.network.p2sh
        else:
            return encode_segwit_address(self.network.segwit_hrp, self.version,
                                         self.program)
        return base58.b58encode_check(bytes([prefix]) + self.program).decode('ASCII')

    @classmethod
    def from_address(cls, address: str, network: Network) -> "FallbackAddress":
        """Classify `address` and check it belongs to `network`."""
        pos = address.rfind('1')
        if pos > 0 and is_segwit_hrp(address[:pos]):
            hrp, version, program = decode_segwit_address(address)
            if hrp != network.segwit_hrp:
                raise NetworkMismatch(
                    "Not a bech32 address for {}: {}".format(network, address))
            if version > 16:
                raise UnsupportedWitnessVersion(
                    "Invalid witness version {}".format(version))
            return cls(network=network, version=version, program=program)

        try:
            addr = base58.b58decode_check(address)
        except ValueError as e:
            raise BadChecksum("Invalid base58check address {}: {}".format(address, e)) from e

        if len(addr) != 21:
            raise UnknownAddressType(
                "Unexpected payload length {} in {}".format(len(addr), address))

        if addr[0] == network.p2pkh:
            version = P2PKH_VERSION
        elif addr[0] == network.p2sh:
            version = P2SH_VERSION
        else:
            raise UnknownAddressType("Unknown address type for {}".format(network))
        return cls(network=network, version=version, program=addr[1:])

    def to_bits(self) -> bitstring.BitArray:
        return pad_to_u5(bitstring.pack("uint:5", self.version)
                         + bitstring.Bits(self.program))

    def __str__(self):
        return self.address


def encode_fallback(address: str, network: Network) -> bitstring.BitArray:
    """ Encode all supported fallback addresses.
    """
    return FallbackAddress.from_address(address, network).to_bits()


def parse_fallback(fallback, network: Network) -> FallbackAddress:
    """Turn the payload of an `f` field back into an address."""
    if fallback.len < 5:
        raise UnknownAddressType("Empty fallback address", tag='f')

    wver = fallback[0:5].uint
    program = trim_to_bytes(fallback[5:])
    check_fallback_program(wver, program)
    return FallbackAddress(network=network, version=wver, program=program)


def check_fallback_program(version: int, program: bytes) -> None:
    """Raise `UnknownAddressType` unless `program` fits `version`."""
    if version > P2SH_VERSION or version < 0:
        raise UnknownAddressType("Unknown fallback version {}".format(version), tag='f')
    if version in (P2PKH_VERSION, P2SH_VERSION):
        if len(program) != 20:
            raise UnknownAddressType(
                "Legacy fallback must carry 20 bytes, not {}".format(len(program)), tag='f')
    else:
        check_witness_program(version, program)
