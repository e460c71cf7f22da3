"""
Exceptions shared across repositories, domain services and the API.

Only persistence problems are raised to callers. External classifier
failures never leave the categorization package.
"""


class PersistenceError(Exception):
    """A datastore write or read required for correctness failed"""

    def __init__(self, operation: str, cause: Exception = None):
        self.operation = operation
        self.cause = cause
        message = f"{operation} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ReceiptNotFoundError(Exception):
    """Receipt id does not exist for the given user"""

    def __init__(self, receipt_id: str):
        self.receipt_id = receipt_id
        super().__init__(f"Receipt {receipt_id} not found")
