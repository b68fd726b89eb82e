from decimal import Decimal, localcontext
from typing import Union
import re

from .errors import MalformedAmount


# BOLT #11:
# The following `multiplier` letters are defined:
#
# * `m` (milli): multiply by 0.001
# * `u` (micro): multiply by 0.000001
# * `n` (nano): multiply by 0.000000001
# * `p` (pico): multiply by 0.000000000001
UNITS = {
    'p': 10**12,
    'n': 10**9,
    'u': 10**6,
    'm': 10**3,
}

MSAT_PER_BTC = 10**11

# Enough digits for any amount that fits a u64 of pico-bitcoin and then some.
_PRECISION = 64


def _exact(f, *args):
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return f(*args)


def _to_pico(amount: Union[Decimal, int, str]) -> int:
    if isinstance(amount, float):
        raise TypeError("Amounts must be Decimal, int or str, not float")
    amount = Decimal(amount)
    if not amount.is_finite():
        raise MalformedAmount("Invalid amount {}".format(amount))
    if amount < 0:
        raise MalformedAmount("Negative amount {}".format(amount))

    pico = _exact(lambda a: a * 10**12, amount)
    if pico != pico.to_integral_value():
        raise MalformedAmount("Cannot encode {}: finer than a pico-bitcoin".format(amount))
    return int(pico)


# BOLT #11:
#
# A writer MUST encode `amount` as a positive decimal integer with no
# leading zeroes, SHOULD use the shortest representation possible.
def shorten_amount(amount: Union[Decimal, int, str]) -> str:
    """ Given an amount in bitcoin, shorten it
    """
    pico = _to_pico(amount)
    for unit in ['p', 'n', 'u', 'm']:
        if pico % 1000 != 0:
            return str(pico) + unit
        pico //= 1000
    return str(pico)


def unshorten_amount(amount: str) -> Decimal:
    """ Given a shortened amount, convert it into a decimal
    """
    # BOLT #11:
    # A reader SHOULD fail if `amount` contains a non-digit, or is followed by
    # anything except a `multiplier` in the table above.
    if not re.fullmatch(r'[0-9]+[pnum]?', str(amount)):
        raise MalformedAmount("Invalid amount '{}'".format(amount))

    unit = amount[-1]
    if unit in UNITS:
        return _exact(lambda a, u: Decimal(a) / u, amount[:-1], UNITS[unit])
    else:
        return Decimal(amount)


def msat_to_btc(msat: int) -> Decimal:
    """Return a Decimal representing the number of bitcoin."""
    return _exact(lambda m: Decimal(m) / MSAT_PER_BTC, msat)


def btc_to_msat(amount: Decimal) -> int:
    """Convert bitcoin to millisatoshi, refusing to round."""
    # BOLT #11:
    # - if the `multiplier` is present ... and the last decimal of
    #   `amount` is not 0: MUST fail the payment.
    msat = _exact(lambda a: Decimal(a) * MSAT_PER_BTC, amount)
    if msat != msat.to_integral_value():
        raise MalformedAmount("Amount {} is not a whole number of millisatoshi".format(amount))
    return int(msat)
