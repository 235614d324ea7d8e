"""Custom exceptions for the TradeFlow application.

Every failure that crosses the API boundary carries a flat string code
(see ``ErrorCode``). The exception classes only decide the HTTP status.
"""
import enum


class ErrorCode(str, enum.Enum):
    """Error taxonomy shared by the API envelope and the clients."""
    EMPTY_CART = 'EMPTY_CART'
    INSUFFICIENT_STOCK = 'INSUFFICIENT_STOCK'
    DISCOUNT_NOT_FOUND = 'DISCOUNT_NOT_FOUND'
    DISCOUNT_INACTIVE = 'DISCOUNT_INACTIVE'
    DISCOUNT_EXPIRED = 'DISCOUNT_EXPIRED'
    MIN_ORDER_AMOUNT = 'MIN_ORDER_AMOUNT'
    MIN_QTY = 'MIN_QTY'
    ORDER_NOT_CANCELLABLE = 'ORDER_NOT_CANCELLABLE'
    ORDER_LIMIT_REACHED = 'ORDER_LIMIT_REACHED'
    INVALID_MODE = 'INVALID_MODE'
    INVALID_VISIT_TYPE = 'INVALID_VISIT_TYPE'
    INVALID_OUTCOME = 'INVALID_OUTCOME'
    MISSING_REQUIRED_FIELD = 'MISSING_REQUIRED_FIELD'
    INVALID_DATE = 'INVALID_DATE'
    INVALID_STATUS_TRANSITION = 'INVALID_STATUS_TRANSITION'
    PRODUCT_NOT_FOUND = 'PRODUCT_NOT_FOUND'
    ITEM_NOT_IN_PO = 'ITEM_NOT_IN_PO'
    PO_NOT_EDITABLE = 'PO_NOT_EDITABLE'
    PO_NOT_READY = 'PO_NOT_READY'
    NOT_FOUND = 'NOT_FOUND'
    VALIDATION_ERROR = 'VALIDATION_ERROR'
    UNAUTHORIZED = 'UNAUTHORIZED'
    FORBIDDEN = 'FORBIDDEN'
    SERVER_ERROR = 'SERVER_ERROR'
    # Raised by API clients when the request never reached the server
    NETWORK_ERROR = 'NETWORK_ERROR'


class ErpError(Exception):
    """Base exception for all application errors."""
    def __init__(self, code=ErrorCode.SERVER_ERROR, message=None, status_code=500, payload=None):
        self.code = ErrorCode(code)
        self.message = message or self.code.value
        super().__init__(self.message)
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['code'] = self.code.value
        rv['message'] = self.message
        return rv


class BusinessLogicError(ErpError):
    """Exception raised for business rule violations."""
    def __init__(self, code, message=None, status_code=400, payload=None):
        super().__init__(code, message, status_code, payload)


class ValidationError(BusinessLogicError):
    """Raised when request input is malformed."""
    def __init__(self, message=None, code=ErrorCode.VALIDATION_ERROR, payload=None):
        super().__init__(code, message, 400, payload)


class NotFoundError(ErpError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", code=ErrorCode.NOT_FOUND, payload=None):
        super().__init__(code, message, 404, payload)


class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, product_name, required, available, payload=None):
        message = f"Insufficient stock for {product_name}: required {required}, available {available}"
        rv = dict(payload or ())
        rv.setdefault('requested', required)
        rv.setdefault('available', available)
        super().__init__(ErrorCode.INSUFFICIENT_STOCK, message, status_code=409, payload=rv)


class InvalidStatusTransitionError(BusinessLogicError):
    """Raised when a state machine refuses a transition."""
    def __init__(self, message):
        super().__init__(ErrorCode.INVALID_STATUS_TRANSITION, message, status_code=409)


class UnauthorizedError(ErpError):
    """Raised when the request carries no valid credentials."""
    def __init__(self, message="Authentication required"):
        super().__init__(ErrorCode.UNAUTHORIZED, message, 401)


class ForbiddenError(ErpError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Forbidden"):
        super().__init__(ErrorCode.FORBIDDEN, message, 403)
