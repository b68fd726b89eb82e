from .codec import decode, decode_invoice, encode_invoice, sign_invoice
from .errors import InvoiceError
from .fallback import FallbackAddress
from .invoice import Invoice, InvoiceBuilder
from .networks import MAINNET, REGTEST, SIGNET, SIMNET, TESTNET, Network, get_network
from .primitives import PrivateKey, PublicKey, ShortChannelId, Signer
from .tags import RouteHop, RoutingHint

__version__ = "0.1.0"

__all__ = [
    "Invoice",
    "InvoiceBuilder",
    "InvoiceError",
    "encode_invoice",
    "sign_invoice",
    "decode_invoice",
    "decode",
    "FallbackAddress",
    "RouteHop",
    "RoutingHint",
    "Network",
    "MAINNET",
    "TESTNET",
    "SIGNET",
    "REGTEST",
    "SIMNET",
    "get_network",
    "PrivateKey",
    "PublicKey",
    "ShortChannelId",
    "Signer",
    "__version__",
]
