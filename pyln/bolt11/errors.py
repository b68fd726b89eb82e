from typing import Optional


class InvoiceError(ValueError):
    """Base class for everything that can go wrong with an invoice.

    `tag` is the letter of the tagged field being processed, and `offset`
    the bit offset into the data part, whenever they are known.
    """
    def __init__(self, message: str, tag: Optional[str] = None,
                 offset: Optional[int] = None):
        self.reason = message
        self.tag = tag
        self.offset = offset

        where = []
        if tag is not None:
            where.append("tag '{}'".format(tag))
        if offset is not None:
            where.append("bit offset {}".format(offset))
        if where:
            message = "{} ({})".format(message, ", ".join(where))
        super().__init__(message)


class MalformedAmount(InvoiceError):
    pass


class TruncatedTag(InvoiceError):
    pass


class MalformedRouteHint(InvoiceError):
    pass


class MalformedField(InvoiceError):
    """A known field whose payload cannot be interpreted."""


class UnknownAddressType(InvoiceError):
    pass


class UnknownNetwork(InvoiceError):
    pass


class NetworkMismatch(InvoiceError):
    pass


class UnsupportedWitnessVersion(InvoiceError):
    pass


class PaddingError(InvoiceError):
    pass


class BadChecksum(InvoiceError):
    pass


class BadCharset(InvoiceError):
    pass


class SignatureInvalid(InvoiceError):
    pass


class InvariantViolation(InvoiceError):
    """Raised by `Invoice.validate()`, before anything gets signed."""
