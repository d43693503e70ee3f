"""
Errors raised by the SmartWallet services.

Each error carries the HTTP status the API layer answers with.
"""


class SmartWalletError(Exception):
    status_code = 500


class NotFoundError(SmartWalletError):
    """Entity missing, or owned by another user"""
    status_code = 404


class InvalidCategoryError(SmartWalletError):
    """Category missing, or of the wrong type"""
    status_code = 400


class DuplicateBudgetError(SmartWalletError):
    status_code = 400


class StoreFailureError(SmartWalletError):
    """Persistence error not otherwise classified"""
    status_code = 500


class InvalidStateError(SmartWalletError):
    status_code = 500
