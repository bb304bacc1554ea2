"""Domain errors raised by the POS services.

Services raise these; the API layer maps each one to an HTTP status code.
Repositories only raise ConcurrentModificationError, everything else they
report through None/False return values.
"""


class PosError(Exception):
    """Base class for all POS domain errors."""

    status_code = 400
    code = "pos_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthenticatedError(PosError):
    """The caller could not be identified."""

    status_code = 401
    code = "unauthenticated"


class NotFoundError(PosError):
    """A referenced menu item, add-on, modifier, cart or transaction is missing."""

    status_code = 404
    code = "not_found"


class InvalidModifierError(PosError):
    """A modifier selection is not allowed for the menu item."""

    status_code = 422
    code = "invalid_modifier"


class InvalidMenuItemError(PosError):
    """A menu item update sets a field to an invalid value or touches a locked field."""

    status_code = 422
    code = "invalid_menu_item"


class InvalidDiscountError(PosError):
    """Discount value is out of range for its type or has too many decimal places."""

    status_code = 422
    code = "invalid_discount"


class InvalidQuantityError(PosError):
    """Quantity is not an integer between 1 and the per-line maximum."""

    status_code = 422
    code = "invalid_quantity"


class TransactionNotMutableError(PosError):
    """Attempted to change a transaction that is already completed."""

    status_code = 409
    code = "transaction_not_mutable"


class ConcurrentModificationError(PosError):
    """The draft cart changed between read and write."""

    status_code = 409
    code = "concurrent_modification"


class StorageError(PosError):
    """The backing store rejected or failed a write."""

    status_code = 503
    code = "storage_error"
