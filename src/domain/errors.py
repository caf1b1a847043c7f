from __future__ import annotations

from typing import Any, Mapping, TypeVar
from uuid import UUID

import pydantic
from pydantic import BaseModel

from .base_types import AccountId, TransactionId, TransferId

ModelT = TypeVar("ModelT", bound=BaseModel)


class LedgerError(Exception):
    """Base class for every error raised by the ledger core."""


class ValidationError(LedgerError):
    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(LedgerError):
    def __init__(self, *, entity_type: str, entity_id: UUID | str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class ConsistencyError(LedgerError):
    """History and account registry disagree; reported by recalculation, never raised out of a batch."""

    def __init__(
        self,
        message: str,
        *,
        account_id: AccountId,
        transaction_id: TransactionId | None = None,
    ) -> None:
        super().__init__(message)
        self.account_id = account_id
        self.transaction_id = transaction_id


class TransferIntegrityError(LedgerError):
    def __init__(
        self,
        message: str,
        *,
        transfer_id: TransferId,
        rolled_back: bool,
    ) -> None:
        super().__init__(message)
        self.transfer_id = transfer_id
        self.rolled_back = rolled_back


class LockTimeoutError(LedgerError):
    def __init__(self, *, account_id: AccountId, timeout: float) -> None:
        self.account_id = account_id
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for account {account_id}")


class UnsupportedCurrencyError(LedgerError):
    def __init__(self, currency: str) -> None:
        self.currency = currency
        super().__init__(f"No exchange rate available for currency {currency}")


def parse_model(model_cls: type[ModelT], data: ModelT | Mapping[str, Any]) -> ModelT:
    """Coerce caller input into ``model_cls``, reporting failures as domain ``ValidationError``.

    Model instances are validated again: ``model_copy(update=...)`` skips validation.
    """
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return model_cls.model_validate(data)
    except pydantic.ValidationError as err:
        first = err.errors()[0] if err.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"Invalid {model_cls.__name__}: {err}", field=location or None) from err


__all__ = [
    "ConsistencyError",
    "LedgerError",
    "LockTimeoutError",
    "NotFoundError",
    "TransferIntegrityError",
    "UnsupportedCurrencyError",
    "ValidationError",
    "parse_model",
]
