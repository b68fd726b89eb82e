from typing import NamedTuple

from .errors import UnknownNetwork


# BOLT #11:
#
# `expiry`... Default is 3600 (1 hour) if not specified.
DEFAULT_EXPIRY = 3600
DEFAULT_MIN_FINAL_CLTV_EXPIRY = 9


class Network(NamedTuple):
    """Chain parameters an invoice needs.

    `prefix` goes after `ln` in the invoice, `segwit_hrp` is the human
    readable part of native segwit addresses, and `p2pkh` / `p2sh` are the
    Base58Check version bytes of legacy addresses.
    """
    name: str
    prefix: str
    segwit_hrp: str
    p2pkh: int
    p2sh: int

    def __str__(self):
        return self.name


MAINNET = Network('mainnet', 'bc', 'bc', 0, 5)
TESTNET = Network('testnet', 'tb', 'tb', 111, 196)
SIGNET = Network('signet', 'tbs', 'tb', 111, 196)
REGTEST = Network('regtest', 'bcrt', 'bcrt', 111, 196)
SIMNET = Network('simnet', 'sb', 'sb', 63, 123)

NETWORKS = {n.prefix: n for n in (MAINNET, TESTNET, SIGNET, REGTEST, SIMNET)}


def get_network(prefix: str) -> Network:
    """Look a network up by its invoice prefix (`bc`, `tb`, ...)."""
    network = NETWORKS.get(prefix.lower())
    if network is None:
        raise UnknownNetwork("Unknown invoice prefix ln{}".format(prefix))
    return network


def is_segwit_hrp(hrp: str) -> bool:
    return any(n.segwit_hrp == hrp.lower() for n in NETWORKS.values())
