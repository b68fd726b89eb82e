from typing import NamedTuple, Tuple, Union
import coincurve
import logging

from .errors import SignatureInvalid


logger = logging.getLogger(__name__)


class ShortChannelId(NamedTuple):
    """BOLT #7 `short_channel_id`: block height, tx index and output index."""
    block: int
    txnum: int
    outnum: int

    @classmethod
    def from_int(cls, i: int) -> "ShortChannelId":
        return cls(block=(i >> 40) & 0xFFFFFF,
                   txnum=(i >> 16) & 0xFFFFFF,
                   outnum=i & 0xFFFF)

    @classmethod
    def from_str(cls, s: str) -> "ShortChannelId":
        block, txnum, outnum = s.split('x')
        return cls(block=int(block), txnum=int(txnum), outnum=int(outnum))

    def to_int(self) -> int:
        return self.block << 40 | self.txnum << 16 | self.outnum

    def __str__(self):
        return "{self.block}x{self.txnum}x{self.outnum}".format(self=self)


class PublicKey(object):
    def __init__(self, innerkey):
        # We accept either 33-bytes raw keys, or an EC PublicKey as returned
        # by coincurve
        if isinstance(innerkey, bytes):
            if len(innerkey) == 33 and innerkey[0] in [2, 3]:
                innerkey = coincurve.PublicKey(innerkey)
            else:
                raise ValueError(
                    "Byte keys must be 33-byte long starting from either 02 or 03"
                )

        elif not isinstance(innerkey, coincurve.keys.PublicKey):
            raise ValueError(
                "Key must either be bytes or coincurve.keys.PublicKey"
            )
        self.key = innerkey

    def serializeCompressed(self) -> bytes:
        return self.key.format(compressed=True)

    def to_bytes(self) -> bytes:
        return self.serializeCompressed()

    def hex(self) -> str:
        return self.to_bytes().hex()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, PublicKey) and self.to_bytes() == other.to_bytes()

    def __hash__(self):
        return hash(self.to_bytes())

    def __str__(self):
        return "PublicKey[0x{}]".format(self.hex())

    def __repr__(self):
        return str(self)


class Signer(object):
    """Anything that can sign an invoice digest.

    Implementations backed by a hardware device or a remote signer only
    need to provide `sign` and `public_key`, blocking until they have an
    answer.
    """
    def sign(self, digest: bytes) -> Tuple[bytes, int]:
        """Return the 64-byte compact signature and the recovery id."""
        raise NotImplementedError()

    def public_key(self) -> PublicKey:
        raise NotImplementedError()


class PrivateKey(Signer):
    def __init__(self, rawkey: Union[bytes, str]) -> None:
        if isinstance(rawkey, str):
            rawkey = bytes.fromhex(rawkey)
        if not isinstance(rawkey, bytes):
            raise TypeError(f"rawkey must be bytes, {type(rawkey)} received")
        elif len(rawkey) != 32:
            raise ValueError(f"rawkey must be 32-byte long. {len(rawkey)} received")

        self.rawkey = rawkey
        self.key = coincurve.PrivateKey(rawkey)

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.public_key)

    def sign(self, digest: bytes) -> Tuple[bytes, int]:
        assert(len(digest) == 32)
        sig = self.key.sign_recoverable(digest, hasher=None)
        return sig[0:64], sig[64]


def recover_public_key(digest: bytes, signature: bytes, recovery_id: int) -> PublicKey:
    """Recover the key that produced `signature` over `digest`."""
    # BOLT #11:
    # `signature`: Bitcoin-style signature of above (64 bytes), plus recovery
    # ID (1 byte)... The recovery ID MUST be 0, 1, 2, or 3.
    if recovery_id not in (0, 1, 2, 3):
        raise SignatureInvalid("Invalid recovery id {}".format(recovery_id))
    if len(signature) != 64:
        raise SignatureInvalid("Signature must be 64 bytes, not {}".format(len(signature)))

    try:
        key = coincurve.PublicKey.from_signature_and_message(
            signature + bytes([recovery_id]), digest, hasher=None)
    except Exception as e:
        raise SignatureInvalid("Public key recovery failed: {}".format(e)) from e

    logger.debug("Recovered public key %s", key.format().hex())
    return PublicKey(key)
