from typing import Optional


class StateLensError(Exception):
    """Base class for errors raised by the storage engine."""


class InvalidAddressError(StateLensError, ValueError):
    """The supplied value is not a well-formed 20-byte address."""


class NotAContractError(StateLensError):
    """The target address carries no bytecode."""

    def __init__(self, address: str) -> None:
        super().__init__(
            f"Address {address} does not contain contract code. "
            "This address is an EOA (Externally Owned Account), not a smart contract."
        )
        self.address = address


class RpcConnectionError(StateLensError):
    """The upstream node could not be reached (network error, timeout, 429/5xx)."""


class RpcRequestError(StateLensError, ValueError):
    """The upstream node answered but rejected the request or returned garbage."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code
