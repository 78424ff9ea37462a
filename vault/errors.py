"""Staking Vault program errors."""

from enum import IntEnum


class VaultErrorCode(IntEnum):
    """Custom error codes returned by the vault program."""

    ALREADY_INITIALIZED = 6000
    """The vault address already holds account state."""
    INSUFFICIENT_FUNDS = 6001
    """The source token account cannot cover the stake."""
    UNAUTHORIZED = 6002
    """The wallet did not sign, or does not own the token account."""
    NO_ACTIVE_STAKE = 6003
    """Nothing is staked for the wallet."""
    INVALID_AMOUNT = 6004
    """Stake amount must be strictly positive."""
    INVALID_ACCOUNT = 6005
    """An account does not match its derived address or mint."""


class VaultError(Exception):
    code: VaultErrorCode

    def __init__(self, message: str = ""):
        super().__init__(message or self.code.name)
        self.message = message or self.code.name


class AlreadyInitialized(VaultError):
    code = VaultErrorCode.ALREADY_INITIALIZED


class InsufficientFunds(VaultError):
    code = VaultErrorCode.INSUFFICIENT_FUNDS


class Unauthorized(VaultError):
    code = VaultErrorCode.UNAUTHORIZED


class NoActiveStake(VaultError):
    code = VaultErrorCode.NO_ACTIVE_STAKE


class InvalidAmount(VaultError):
    code = VaultErrorCode.INVALID_AMOUNT


class InvalidAccount(VaultError):
    code = VaultErrorCode.INVALID_ACCOUNT

