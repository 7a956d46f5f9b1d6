"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Account / ledger
  3xxx: Market
  4xxx: Order
  7xxx: Payments provider
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/User ---

class UsernameExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Username already exists", 409)


class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid username or password", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


class InvalidRefreshTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Refresh token is invalid or expired", 401)


class ForbiddenError(AppError):
    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(1006, detail, 403)


# --- 2xxx: Account ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient balance: required {required}, available {available}",
            422,
        )


class AccountNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Account not found for user {user_id}", 404)


class SimulatedDepositDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(2003, "Simulated deposits are disabled", 403)


# --- 3xxx: Market ---

class MarketNotFoundError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3001, f"Market not found: {market_id}", 404)


class MarketClosedError(AppError):
    def __init__(self, market_id: str, reason: str = "market is not open") -> None:
        super().__init__(3002, f"Market {market_id} is closed: {reason}", 422)


class MarketAlreadyResolvedError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3003, f"Market already resolved: {market_id}", 409)


class InvalidMarketTransitionError(AppError):
    def __init__(self, market_id: str, current: str, target: str) -> None:
        super().__init__(
            3004, f"Market {market_id} cannot move from {current} to {target}", 422
        )


class InvalidMarketWindowError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3005, f"Market {market_id}: end_date must be after start_date", 422)


# --- 4xxx: Order ---

class OrderValidationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Invalid order: {detail}", 422)


class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4004, f"Order not found: {order_id}", 404)


class DuplicateOrderError(AppError):
    def __init__(self, market_id: str, side: str, price: int) -> None:
        super().__init__(
            4005,
            f"An active {side} order at price {price} already exists in market {market_id}",
            409,
        )


class OrderNotCancellableError(AppError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(4006, f"Order {order_id} in status {status} cannot be cancelled", 422)


class InvalidStateTransitionError(AppError):
    def __init__(self, order_id: str, current: str, target: str) -> None:
        super().__init__(
            4007, f"Order {order_id} cannot move from {current} to {target}", 422
        )


# --- 7xxx: Payments provider ---

class PaymentGatewayError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(7001, f"Payment provider error: {detail}", 502)


class PaymentOutcomeUnknownError(PaymentGatewayError):
    """The request may have reached the provider; only its webhook can tell."""


class InvalidWebhookSignatureError(AppError):
    def __init__(self) -> None:
        super().__init__(7002, "Invalid webhook signature", 401)


class WithdrawalNotFoundError(AppError):
    def __init__(self, reference: str) -> None:
        super().__init__(7003, f"Withdrawal not found: {reference}", 404)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class ConcurrencyConflictError(AppError):
    """Lock wait exhausted; safe for the caller to retry."""

    def __init__(self, detail: str = "Concurrent update conflict, please retry") -> None:
        super().__init__(9003, detail, 409)
