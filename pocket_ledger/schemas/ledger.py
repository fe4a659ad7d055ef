"""
Pydantic schemas for wallets, categories and transactions.

These define the API contract. Field constraints here only
cover shape (types, maximum lengths); the business rules
(minimum name length, positive amounts, category kind) are
enforced by the LedgerService so that every caller, not only
HTTP clients, gets the same ValidationError.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field

from pocket_ledger.models.enums import TransactionKind


# --- Wallet Schemas ---

class WalletCreate(BaseModel):
    user_id: int
    name: str = Field(max_length=100)
    initial_amount: int = 0
    currency: str = Field(default="VND", max_length=3)


class WalletUpdate(BaseModel):
    name: str = Field(max_length=100)


class WalletResponse(BaseModel):
    id: int
    user_id: int
    name: str
    currency: str
    balance: int
    is_default: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class TransferRequest(BaseModel):
    """Move money between two wallets of the same user."""
    source_wallet_id: int
    destination_wallet_id: int
    amount: int
    occurred_on: date
    note: str = ""


class TransferResponse(BaseModel):
    source: "TransactionResponse"
    destination: "TransactionResponse"


# --- Category Schemas ---

class CategoryCreate(BaseModel):
    user_id: int
    name: str = Field(max_length=100)
    kind: TransactionKind
    icon: str = Field(default="tag-outline", max_length=50)


class CategoryUpdate(BaseModel):
    """Rename and/or change the icon. The kind cannot change."""
    name: str | None = Field(default=None, max_length=100)
    icon: str | None = Field(default=None, max_length=50)


class CategoryResponse(BaseModel):
    id: int
    user_id: int | None
    name: str
    kind: TransactionKind
    icon: str

    model_config = {"from_attributes": True}


# --- Transaction Schemas ---

class TransactionCreate(BaseModel):
    """
    A new income or expense.

    The caller supplies an unsigned magnitude; the service
    derives the signed amount from the kind.
    """
    wallet_id: int
    category_id: int
    kind: TransactionKind
    magnitude: int
    occurred_on: date
    note: str = ""


class TransactionUpdate(BaseModel):
    """Partial update. Fields left as None keep their value."""
    category_id: int | None = None
    kind: TransactionKind | None = None
    magnitude: int | None = None
    occurred_on: date | None = None
    note: str | None = None


class TransactionResponse(BaseModel):
    id: int
    wallet_id: int
    category_id: int
    kind: TransactionKind
    amount: int
    occurred_on: date
    note: str
    created_at: datetime

    model_config = {"from_attributes": True}


class BulkDeleteRequest(BaseModel):
    transaction_ids: list[int] = Field(min_length=1)


# --- Quick input ---

class TransactionDraft(BaseModel):
    """One fragment of quick-input text, not yet committed."""
    description: str
    amount: int
    category_id: int | None = None
    kind: TransactionKind = TransactionKind.EXPENSE


class QuickParseRequest(BaseModel):
    user_id: int
    text: str


class QuickCommitRequest(BaseModel):
    wallet_id: int
    occurred_on: date
    drafts: list[TransactionDraft] = Field(min_length=1)


# --- Audit ---

class AuditEntryResponse(BaseModel):
    id: int
    event_type: str
    wallet_id: int | None
    details: str
    created_at: datetime

    model_config = {"from_attributes": True}


TransferResponse.model_rebuild()
