"""
Ledger service: the single authority for wallet balances.

This service enforces the fundamental rules:
1. A wallet's balance always equals the sum of the signed
   amounts of its transactions
2. Every transaction is written together with the balance
   change it causes, in the same flush
3. Categories must exist, be visible to the wallet owner and
   have the same kind as the transaction
4. Nothing is written until every check has passed

No other service writes wallet balances directly.
Recurring expenses and savings contributions go through here.
"""

import logging
from datetime import date

from sqlalchemy import select, func, delete, update, or_
from sqlalchemy.orm import Session

from pocket_ledger.clock import utcnow
from pocket_ledger.config import Settings, get_settings
from pocket_ledger.exceptions import (
    ValidationError,
    NotFoundError,
    ConflictError,
)
from pocket_ledger.models.category import Category
from pocket_ledger.models.enums import TransactionKind, CategoryScope
from pocket_ledger.models.recurring_rule import RecurringExpenseRule
from pocket_ledger.models.savings_goal import GoalContribution
from pocket_ledger.models.transaction import Transaction
from pocket_ledger.models.wallet import Wallet
from pocket_ledger.schemas.ledger import (
    WalletCreate,
    WalletUpdate,
    CategoryCreate,
    CategoryUpdate,
    TransactionCreate,
    TransactionUpdate,
    TransferRequest,
    QuickCommitRequest,
)
from pocket_ledger.services.audit import record_event

log = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2

# System categories used by the ledger itself
OPENING_BALANCE_CATEGORY = "Opening balance"
TRANSFER_IN_CATEGORY = "Transfer in"
TRANSFER_OUT_CATEGORY = "Transfer out"
SAVINGS_CATEGORY = "Savings"

# Seed data shared by every user: (name, kind, icon)
SYSTEM_CATEGORIES = [
    ("Food & Drinks", TransactionKind.EXPENSE, "food"),
    ("Entertainment", TransactionKind.EXPENSE, "gamepad-variant"),
    ("Transport", TransactionKind.EXPENSE, "car"),
    ("Shopping", TransactionKind.EXPENSE, "cart"),
    ("Bills", TransactionKind.EXPENSE, "receipt"),
    ("Salary", TransactionKind.INCOME, "cash"),
    (OPENING_BALANCE_CATEGORY, TransactionKind.INCOME, "wallet"),
    (TRANSFER_IN_CATEGORY, TransactionKind.INCOME, "swap-horizontal"),
    (TRANSFER_OUT_CATEGORY, TransactionKind.EXPENSE, "swap-horizontal"),
    (SAVINGS_CATEGORY, TransactionKind.EXPENSE, "piggy-bank"),
]


class LedgerService:
    """
    All wallet, category and transaction operations pass
    through this service.

    The service takes a database session as a constructor
    argument. The caller controls the transaction boundary;
    it decides when to commit or rollback. Every method
    validates first and only then mutates, so a raised error
    never leaves a half-applied change in the session.
    """

    def __init__(self, db: Session, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    # --- Helpers ---

    def _validate_name(self, name: str, what: str) -> str:
        cleaned = (name or "").strip()
        if len(cleaned) < MIN_NAME_LENGTH:
            raise ValidationError(
                f"{what} name must be at least {MIN_NAME_LENGTH} characters",
                details={"name": name},
            )
        return cleaned

    def _validate_magnitude(self, magnitude: int) -> int:
        if magnitude is None or magnitude <= 0:
            raise ValidationError(
                f"Amount must be positive, got {magnitude}",
                details={"amount": magnitude},
            )
        return magnitude

    def _clean_note(self, note: str | None) -> str:
        return (note or "").strip()[: self.settings.NOTE_MAX_LENGTH]

    def _lock_wallet(self, wallet_id: int) -> Wallet:
        """
        Load a wallet row with SELECT ... FOR UPDATE.

        Where the database supports row locks, concurrent mutations
        of the same wallet wait here until the holder commits; other
        wallets are not affected. Balance arithmetic itself happens in
        SQL (see _apply_balance), so it stays correct without the lock.
        populate_existing refreshes the balance read under the
        lock even if the wallet is already in the session.
        """
        wallet = self.db.execute(
            select(Wallet)
            .where(Wallet.id == wallet_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if not wallet:
            raise NotFoundError(f"Wallet {wallet_id} not found")
        return wallet

    def _apply_balance(self, wallet: Wallet, delta: int) -> None:
        """
        Move a wallet balance by delta.

        The addition is done by the UPDATE statement, not in Python,
        so concurrent sessions never overwrite each other's change
        even where FOR UPDATE is a no-op (SQLite). The in-memory
        balance is reloaded afterwards.
        """
        if delta == 0:
            return
        self.db.execute(
            update(Wallet)
            .where(Wallet.id == wallet.id)
            .values(balance=Wallet.balance + delta)
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(wallet, attribute_names=["balance"])

    def _lock_wallets(self, wallet_ids) -> dict[int, Wallet]:
        """Lock several wallets in id order so two callers cannot deadlock."""
        return {wid: self._lock_wallet(wid) for wid in sorted(set(wallet_ids))}

    def resolve_category(
        self, user_id: int, category_id: int, kind: TransactionKind
    ) -> Category:
        category = self.db.get(Category, category_id)
        if not category or not category.visible_to(user_id):
            raise NotFoundError(f"Category {category_id} not found")
        if category.kind != kind:
            raise ValidationError(
                f"Category '{category.name}' is an {category.kind.value} "
                f"category, transaction is {kind.value}"
            )
        return category

    def _insert(
        self,
        wallet: Wallet,
        category: Category,
        kind: TransactionKind,
        magnitude: int,
        occurred_on: date,
        note: str | None,
    ) -> Transaction:
        """Write a transaction and its balance change. No validation."""
        signed = kind.sign(magnitude)
        txn = Transaction(
            wallet_id=wallet.id,
            category_id=category.id,
            kind=kind,
            amount=signed,
            occurred_on=occurred_on,
            note=self._clean_note(note),
        )
        self._apply_balance(wallet, signed)
        self.db.add(txn)
        return txn

    # --- System categories ---

    def seed_system_categories(self) -> list[Category]:
        """Create any missing system category. Safe to call repeatedly."""
        existing = set(self.db.execute(
            select(Category.name).where(Category.user_id.is_(None))
        ).scalars().all())

        created = []
        for name, kind, icon in SYSTEM_CATEGORIES:
            if name in existing:
                continue
            category = Category(user_id=None, name=name, kind=kind, icon=icon)
            self.db.add(category)
            created.append(category)

        if created:
            self.db.flush()
            log.info(f"Seeded {len(created)} system categories")
        return created

    def system_category(self, name: str) -> Category:
        """Get a system category by name, seeding the defaults if needed."""
        category = self.db.execute(
            select(Category).where(
                Category.user_id.is_(None), Category.name == name
            )
        ).scalar_one_or_none()

        if not category:
            self.seed_system_categories()
            category = self.db.execute(
                select(Category).where(
                    Category.user_id.is_(None), Category.name == name
                )
            ).scalar_one_or_none()

        if not category:
            raise NotFoundError(f"System category '{name}' not found")
        return category

    # --- Wallets ---

    def create_wallet(
        self, request: WalletCreate, opened_on: date | None = None
    ) -> Wallet:
        """
        Create a wallet holding an initial amount.

        A positive initial amount is recorded as an income
        transaction in the "Opening balance" category, so the
        balance equals the transaction sum from the start.
        The user's first wallet becomes the default one.
        """
        name = self._validate_name(request.name, "Wallet")

        if request.initial_amount < 0:
            raise ValidationError(
                "Initial amount cannot be negative",
                details={"initial_amount": request.initial_amount},
            )

        currency = (request.currency or "").strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ValidationError(f"Invalid currency code '{request.currency}'")

        duplicate = self.db.execute(
            select(Wallet).where(
                Wallet.user_id == request.user_id,
                func.lower(Wallet.name) == name.lower(),
            )
        ).scalar_one_or_none()
        if duplicate:
            raise ConflictError(f"Wallet '{name}' already exists")

        has_wallet = self.db.execute(
            select(Wallet.id).where(Wallet.user_id == request.user_id).limit(1)
        ).scalar_one_or_none()

        opening = None
        if request.initial_amount > 0:
            opening = self.system_category(OPENING_BALANCE_CATEGORY)

        wallet = Wallet(
            user_id=request.user_id,
            name=name,
            currency=currency,
            balance=0,
            is_default=has_wallet is None,
        )
        self.db.add(wallet)
        self.db.flush()

        if opening is not None:
            self._insert(
                wallet,
                opening,
                TransactionKind.INCOME,
                request.initial_amount,
                opened_on or utcnow().date(),
                OPENING_BALANCE_CATEGORY,
            )

        record_event(
            self.db, "wallet.created",
            wallet_id=wallet.id, user_id=wallet.user_id,
            initial_amount=request.initial_amount,
        )
        self.db.flush()
        log.info(f"Wallet {wallet.id} created for user {wallet.user_id}")
        return wallet

    def get_wallet(self, wallet_id: int) -> Wallet:
        wallet = self.db.get(Wallet, wallet_id)
        if not wallet:
            raise NotFoundError(f"Wallet {wallet_id} not found")
        return wallet

    def list_wallets(self, user_id: int) -> list[Wallet]:
        """All wallets of a user, oldest first."""
        wallets = self.db.execute(
            select(Wallet).where(Wallet.user_id == user_id).order_by(Wallet.id)
        ).scalars().all()
        return list(wallets)

    def update_wallet(self, wallet_id: int, request: WalletUpdate) -> Wallet:
        """Rename a wallet. Names stay unique per user."""
        wallet = self.get_wallet(wallet_id)
        name = self._validate_name(request.name, "Wallet")

        duplicate = self.db.execute(
            select(Wallet).where(
                Wallet.user_id == wallet.user_id,
                Wallet.id != wallet.id,
                func.lower(Wallet.name) == name.lower(),
            )
        ).scalar_one_or_none()
        if duplicate:
            raise ConflictError(f"Wallet '{name}' already exists")

        wallet.name = name
        self.db.flush()
        return wallet

    def set_default_wallet(self, wallet_id: int) -> Wallet:
        wallet = self.get_wallet(wallet_id)
        for other in self.list_wallets(wallet.user_id):
            other.is_default = other.id == wallet.id
        self.db.flush()
        return wallet

    def delete_wallet(self, wallet_id: int, cascade: bool = False) -> None:
        """
        Delete a wallet.

        A wallet that still owns transactions or recurring rules
        is only deleted with cascade=True, which removes them
        too. If the wallet was the default, the user's oldest
        remaining wallet becomes the default.
        """
        wallet = self._lock_wallet(wallet_id)

        txn_ids = list(self.db.execute(
            select(Transaction.id).where(Transaction.wallet_id == wallet.id)
        ).scalars().all())
        rule_count = self.db.execute(
            select(func.count(RecurringExpenseRule.id)).where(
                RecurringExpenseRule.wallet_id == wallet.id
            )
        ).scalar()

        if (txn_ids or rule_count) and not cascade:
            raise ConflictError(
                f"Wallet {wallet_id} still has {len(txn_ids)} transactions "
                f"and {rule_count} recurring rules",
                details={"transactions": len(txn_ids), "rules": rule_count},
            )

        if txn_ids:
            self.db.execute(
                update(GoalContribution)
                .where(GoalContribution.transaction_id.in_(txn_ids))
                .values(transaction_id=None)
            )
            self.db.execute(
                delete(Transaction).where(Transaction.wallet_id == wallet.id)
            )
        self.db.execute(
            update(GoalContribution)
            .where(GoalContribution.wallet_id == wallet.id)
            .values(wallet_id=None)
        )
        if rule_count:
            self.db.execute(
                delete(RecurringExpenseRule).where(
                    RecurringExpenseRule.wallet_id == wallet.id
                )
            )

        if wallet.is_default:
            successor = self.db.execute(
                select(Wallet)
                .where(Wallet.user_id == wallet.user_id, Wallet.id != wallet.id)
                .order_by(Wallet.id)
                .limit(1)
            ).scalar_one_or_none()
            if successor:
                successor.is_default = True

        self.db.delete(wallet)
        record_event(
            self.db, "wallet.deleted",
            wallet_id=wallet_id, cascade=cascade,
            transactions=len(txn_ids),
        )
        self.db.flush()
        log.info(f"Wallet {wallet_id} deleted (cascade={cascade})")

    def recompute_balance(self, wallet_id: int) -> int:
        """Sum of signed amounts; equals Wallet.balance when consistent."""
        self.get_wallet(wallet_id)
        total = self.db.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.wallet_id == wallet_id
            )
        ).scalar()
        return int(total)

    # --- Transactions ---

    def create_transaction(self, request: TransactionCreate) -> Transaction:
        """
        Record an income or expense and adjust the wallet.

        The signed amount is +magnitude for income and
        -magnitude for expense. The note is truncated to the
        configured maximum length.
        """
        self._validate_magnitude(request.magnitude)
        wallet = self._lock_wallet(request.wallet_id)
        category = self.resolve_category(
            wallet.user_id, request.category_id, request.kind
        )

        txn = self._insert(
            wallet,
            category,
            request.kind,
            request.magnitude,
            request.occurred_on,
            request.note,
        )
        self.db.flush()
        record_event(
            self.db, "transaction.created",
            transaction_id=txn.id, wallet_id=wallet.id, amount=txn.amount,
        )
        self.db.flush()
        log.info(
            f"Transaction {txn.id} ({txn.amount}) posted to wallet {wallet.id}"
        )
        return txn

    def get_transaction(self, transaction_id: int) -> Transaction:
        txn = self.db.get(Transaction, transaction_id)
        if not txn:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return txn

    def update_transaction(
        self, transaction_id: int, request: TransactionUpdate
    ) -> Transaction:
        """
        Change a transaction and move the wallet balance by
        (new signed amount - old signed amount).
        """
        txn = self.get_transaction(transaction_id)
        wallet = self._lock_wallet(txn.wallet_id)

        kind = request.kind if request.kind is not None else txn.kind
        magnitude = (
            request.magnitude if request.magnitude is not None
            else txn.magnitude
        )
        self._validate_magnitude(magnitude)
        category_id = (
            request.category_id if request.category_id is not None
            else txn.category_id
        )
        self.resolve_category(wallet.user_id, category_id, kind)

        old_amount = txn.amount
        new_amount = kind.sign(magnitude)

        txn.kind = kind
        txn.amount = new_amount
        txn.category_id = category_id
        if request.occurred_on is not None:
            txn.occurred_on = request.occurred_on
        if request.note is not None:
            txn.note = self._clean_note(request.note)
        self._apply_balance(wallet, new_amount - old_amount)

        record_event(
            self.db, "transaction.updated",
            transaction_id=txn.id, wallet_id=wallet.id,
            old_amount=old_amount, new_amount=new_amount,
        )
        self.db.flush()
        return txn

    def delete_transaction(self, transaction_id: int) -> None:
        """Remove a transaction and reverse its effect on the wallet."""
        txn = self.get_transaction(transaction_id)
        wallet = self._lock_wallet(txn.wallet_id)

        self._apply_balance(wallet, -txn.amount)
        self.db.execute(
            update(GoalContribution)
            .where(GoalContribution.transaction_id == txn.id)
            .values(transaction_id=None)
        )
        self.db.delete(txn)
        record_event(
            self.db, "transaction.deleted",
            transaction_id=transaction_id, wallet_id=wallet.id,
            amount=txn.amount,
        )
        self.db.flush()

    def delete_transactions(self, transaction_ids: list[int]) -> int:
        """
        Delete several transactions at once.

        Unknown ids reject the whole request before anything
        is removed. Returns the number of deleted transactions.
        """
        ids = set(transaction_ids)
        txns = list(self.db.execute(
            select(Transaction).where(Transaction.id.in_(ids))
        ).scalars().all())

        missing = ids - {t.id for t in txns}
        if missing:
            raise NotFoundError(
                f"Transactions not found: {sorted(missing)}",
                details={"missing": sorted(missing)},
            )

        wallets = self._lock_wallets(t.wallet_id for t in txns)
        deltas: dict[int, int] = {}
        for txn in txns:
            deltas[txn.wallet_id] = deltas.get(txn.wallet_id, 0) - txn.amount
            self.db.delete(txn)
        for wallet_id, delta in deltas.items():
            self._apply_balance(wallets[wallet_id], delta)

        self.db.execute(
            update(GoalContribution)
            .where(GoalContribution.transaction_id.in_(ids))
            .values(transaction_id=None)
        )
        record_event(
            self.db, "transaction.bulk_deleted",
            transaction_ids=sorted(ids),
        )
        self.db.flush()
        return len(txns)

    def list_transactions(self, wallet_id: int) -> list[Transaction]:
        """Return all transactions of a wallet, newest first."""
        self.get_wallet(wallet_id)
        txns = self.db.execute(
            select(Transaction)
            .where(Transaction.wallet_id == wallet_id)
            .order_by(Transaction.occurred_on.desc(), Transaction.id.desc())
        ).scalars().all()
        return list(txns)

    def create_quick_transactions(
        self, request: QuickCommitRequest
    ) -> list[Transaction]:
        """
        Commit parsed quick-input drafts to one wallet.

        Drafts are written in input order. Every draft is
        validated before the first one is written.
        """
        wallet = self._lock_wallet(request.wallet_id)

        resolved = []
        for draft in request.drafts:
            self._validate_magnitude(draft.amount)
            if draft.category_id is None:
                raise ValidationError(
                    f"Draft '{draft.description}' has no category"
                )
            category = self.resolve_category(
                wallet.user_id, draft.category_id, draft.kind
            )
            resolved.append((draft, category))

        txns = [
            self._insert(
                wallet, category, draft.kind, draft.amount,
                request.occurred_on, draft.description,
            )
            for draft, category in resolved
        ]
        self.db.flush()
        record_event(
            self.db, "transaction.quick_created",
            wallet_id=wallet.id, transaction_ids=[t.id for t in txns],
        )
        self.db.flush()
        return txns

    def transfer(self, request: TransferRequest) -> tuple[Transaction, Transaction]:
        """
        Move money between two wallets of the same user.

        Recorded as an expense on the source and an income on
        the destination, so both wallets keep balance equal to
        their transaction sum.
        """
        if request.source_wallet_id == request.destination_wallet_id:
            raise ValidationError("Cannot transfer to the same wallet")
        self._validate_magnitude(request.amount)

        wallets = self._lock_wallets(
            [request.source_wallet_id, request.destination_wallet_id]
        )
        source = wallets[request.source_wallet_id]
        destination = wallets[request.destination_wallet_id]

        if source.user_id != destination.user_id:
            raise ValidationError("Wallets belong to different users")
        if source.currency != destination.currency:
            raise ValidationError(
                f"Cannot transfer between {source.currency} "
                f"and {destination.currency} wallets"
            )
        if source.balance < request.amount:
            raise ValidationError(
                f"Insufficient balance: available={source.balance}, "
                f"requested={request.amount}"
            )

        out_category = self.system_category(TRANSFER_OUT_CATEGORY)
        in_category = self.system_category(TRANSFER_IN_CATEGORY)
        note = request.note or f"Transfer from {source.name} to {destination.name}"

        outgoing = self._insert(
            source, out_category, TransactionKind.EXPENSE,
            request.amount, request.occurred_on, note,
        )
        incoming = self._insert(
            destination, in_category, TransactionKind.INCOME,
            request.amount, request.occurred_on, note,
        )
        self.db.flush()
        record_event(
            self.db, "wallet.transfer",
            source_wallet_id=source.id, destination_wallet_id=destination.id,
            amount=request.amount,
        )
        self.db.flush()
        return outgoing, incoming

    # --- Categories ---

    def create_category(self, request: CategoryCreate) -> Category:
        name = self._validate_name(request.name, "Category")

        duplicate = self.db.execute(
            select(Category).where(
                Category.user_id == request.user_id,
                Category.kind == request.kind,
                func.lower(Category.name) == name.lower(),
            )
        ).scalar_one_or_none()
        if duplicate:
            raise ConflictError(f"Category '{name}' already exists")

        category = Category(
            user_id=request.user_id,
            name=name,
            kind=request.kind,
            icon=request.icon,
        )
        self.db.add(category)
        self.db.flush()
        return category

    def get_category(self, category_id: int) -> Category:
        category = self.db.get(Category, category_id)
        if not category:
            raise NotFoundError(f"Category {category_id} not found")
        return category

    def rename_category(
        self, category_id: int, request: CategoryUpdate
    ) -> Category:
        """Change name and/or icon. The kind is immutable."""
        category = self.get_category(category_id)
        if category.is_system:
            raise ConflictError("System categories cannot be changed")

        if request.name is not None:
            category.name = self._validate_name(request.name, "Category")
        if request.icon is not None:
            category.icon = request.icon

        self.db.flush()
        return category

    def delete_category(self, category_id: int) -> None:
        """
        Delete a user category.

        Rejected while any transaction or recurring rule still
        references it; references are never silently dropped.
        """
        category = self.get_category(category_id)
        if category.is_system:
            raise ConflictError("System categories cannot be deleted")

        in_use = self.db.execute(
            select(func.count(Transaction.id)).where(
                Transaction.category_id == category_id
            )
        ).scalar()
        rules = self.db.execute(
            select(func.count(RecurringExpenseRule.id)).where(
                RecurringExpenseRule.category_id == category_id
            )
        ).scalar()
        if in_use or rules:
            raise ConflictError(
                f"Category '{category.name}' is still in use",
                details={"transactions": in_use, "rules": rules},
            )

        self.db.delete(category)
        self.db.flush()

    def list_categories(
        self, user_id: int, scope: CategoryScope = CategoryScope.ALL
    ) -> list[Category]:
        query = select(Category)
        if scope == CategoryScope.SYSTEM:
            query = query.where(Category.user_id.is_(None))
        elif scope == CategoryScope.USER:
            query = query.where(Category.user_id == user_id)
        else:
            query = query.where(
                or_(Category.user_id.is_(None), Category.user_id == user_id)
            )
        categories = self.db.execute(query.order_by(Category.id)).scalars().all()
        return list(categories)
