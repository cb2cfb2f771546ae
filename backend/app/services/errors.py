# Overview: Typed failures raised by the sale-item, stock and sale services.

"""
Error taxonomy for the POS services.

Every failure a service can surface is a PosError subclass carrying a
message, an optional details dict, and the HTTP status the routes map it to.
Services raise; routes catch PosError and render to_dict().

Retry policy (concurrency.run_in_transaction):
- Lock and version conflicts from the store (OperationalError,
  StaleDataError) are retried with backoff. TransientStoreConflict is what
  the caller sees once the attempts run out; it is never retried itself.
- A PosError raised by the operation aborts the transaction on the first
  attempt and is surfaced as-is.
- Any other SQLAlchemyError becomes StoreFailure with a correlation id.
"""


class PosError(Exception):
    """Base class for domain failures."""
    status_code = 500
    code = "POS_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class InvalidArgument(PosError):
    """Malformed input: non-positive quantity, negative price, non-integer id."""
    status_code = 400
    code = "INVALID_ARGUMENT"


class NotFoundError(PosError):
    status_code = 404
    code = "NOT_FOUND"


class SaleNotFound(NotFoundError):
    code = "SALE_NOT_FOUND"

    def __init__(self, sale_id):
        super().__init__("Sale not found", details={"sale_id": sale_id})


class ProductNotFound(NotFoundError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id):
        super().__init__("Product not found", details={"product_id": product_id})


class ItemNotFound(NotFoundError):
    code = "ITEM_NOT_FOUND"

    def __init__(self, item_id):
        super().__init__("Sale item not found", details={"item_id": item_id})


class CustomerNotFound(NotFoundError):
    code = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id):
        super().__init__("Customer not found", details={"customer_id": customer_id})


class PaymentNotFound(NotFoundError):
    code = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id):
        super().__init__("Payment not found", details={"payment_id": payment_id})


class ReceiptNotFound(NotFoundError):
    code = "RECEIPT_NOT_FOUND"

    def __init__(self, receipt_id):
        super().__init__("Receipt not found", details={"receipt_id": receipt_id})


class AccessDenied(PosError):
    """Actor lacks the role or ownership the operation needs."""
    status_code = 403
    code = "ACCESS_DENIED"


class InsufficientStock(PosError):
    """Requested reservation exceeds available stock."""
    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            "Insufficient stock",
            details={
                "product_id": product_id,
                "requested_quantity": requested,
                "stock_level": available,
            },
        )


class TransientStoreConflict(PosError):
    """Concurrent-write conflict that survived every retry attempt."""
    status_code = 503
    code = "TRANSIENT_CONFLICT"

    def __init__(self, attempts: int):
        super().__init__(
            "Concurrent update conflict, please retry",
            details={"attempts": attempts},
        )


class StoreFailure(PosError):
    """Unexpected storage failure. Only the correlation id leaves the process."""
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, correlation_id: str):
        super().__init__("Internal server error", details={"correlation_id": correlation_id})
        self.correlation_id = correlation_id


class ConflictError(PosError):
    """Business rule conflict (e.g., duplicate SKU)."""
    status_code = 409
    code = "CONFLICT"
