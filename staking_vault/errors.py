"""Exception hierarchy for vault operations."""


class VaultError(Exception):
    """Base class for every error raised by a vault operation."""


class AccessDenied(VaultError):
    """Caller lacks the required owner or mint authority."""


class InvalidAmount(VaultError, ValueError):
    """Zero amount, amount above the balance, or a balance stranded below the minimum stake."""


class ExceedsBalance(InvalidAmount):
    def __init__(self, message: str = "Amount exceeds account balance") -> None:
        super().__init__(message)


class BelowMinimumStake(InvalidAmount):
    def __init__(self, message: str = "Below minimum staking amount") -> None:
        super().__init__(message)


class ExternalCallFailure(VaultError, RuntimeError):
    """The lending market, price oracle or asset transfer did not succeed."""


class ArithmeticFault(VaultError, ArithmeticError):
    """A balance or accrual computation left the uint256 range."""


class ReentrantCall(VaultError):
    """A mutating operation was entered while another one was still running."""
