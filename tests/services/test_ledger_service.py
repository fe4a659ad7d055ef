"""
Tests for the LedgerService.

Tests cover:
- Wallet creation, naming rules and default wallet handling
- Balance equals the sum of signed transaction amounts after
  every create/update/delete
- Category visibility and kind checks
- Transfers, bulk delete and quick-input commit
- Wallet and category deletion conflicts
- Concurrent changes to one wallet from several sessions
"""

import threading
from datetime import date

import pytest

from pocket_ledger.exceptions import (
    ValidationError,
    NotFoundError,
    ConflictError,
)
from pocket_ledger.models.enums import TransactionKind, CategoryScope
from pocket_ledger.scheduler import ReminderScheduler
from pocket_ledger.services.ledger_service import (
    LedgerService,
    OPENING_BALANCE_CATEGORY,
)
from pocket_ledger.schemas.ledger import (
    WalletCreate,
    WalletUpdate,
    CategoryCreate,
    CategoryUpdate,
    TransactionCreate,
    TransactionUpdate,
    TransferRequest,
    TransactionDraft,
    QuickCommitRequest,
)
from pocket_ledger.schemas.recurring import RecurringRuleCreate
from pocket_ledger.services.recurring_service import RecurringExpenseEngine

USER = 1
OTHER_USER = 2
DAY = date(2024, 3, 15)


# --- Helpers ---

def make_wallet(service, name="Cash", initial=0, user_id=USER, currency="VND"):
    return service.create_wallet(
        WalletCreate(
            user_id=user_id,
            name=name,
            initial_amount=initial,
            currency=currency,
        ),
        opened_on=DAY,
    )


def category(service, name):
    return service.system_category(name)


def spend(service, wallet, amount, category_name="Food & Drinks", note=""):
    return service.create_transaction(TransactionCreate(
        wallet_id=wallet.id,
        category_id=category(service, category_name).id,
        kind=TransactionKind.EXPENSE,
        magnitude=amount,
        occurred_on=DAY,
        note=note,
    ))


def earn(service, wallet, amount):
    return service.create_transaction(TransactionCreate(
        wallet_id=wallet.id,
        category_id=category(service, "Salary").id,
        kind=TransactionKind.INCOME,
        magnitude=amount,
        occurred_on=DAY,
    ))


def assert_consistent(service, wallet):
    assert wallet.balance == service.recompute_balance(wallet.id)


# --- Wallets ---

class TestCreateWallet:

    def test_initial_amount_becomes_opening_transaction(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=500_000)
        db_session.commit()

        assert wallet.balance == 500_000
        txns = service.list_transactions(wallet.id)
        assert len(txns) == 1
        assert txns[0].amount == 500_000
        assert txns[0].category.name == OPENING_BALANCE_CATEGORY
        assert_consistent(service, wallet)

    def test_zero_initial_amount_has_no_transactions(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service)

        assert wallet.balance == 0
        assert service.list_transactions(wallet.id) == []

    def test_first_wallet_is_default(self, db_session):
        service = LedgerService(db_session)
        first = make_wallet(service, "Cash")
        second = make_wallet(service, "Bank")

        assert first.is_default is True
        assert second.is_default is False

    def test_short_name_rejected(self, db_session):
        service = LedgerService(db_session)
        with pytest.raises(ValidationError, match="at least 2"):
            make_wallet(service, name=" a ")

    def test_negative_initial_amount_rejected(self, db_session):
        service = LedgerService(db_session)
        with pytest.raises(ValidationError):
            make_wallet(service, initial=-1)

    def test_duplicate_name_rejected(self, db_session):
        service = LedgerService(db_session)
        make_wallet(service, "Cash")
        with pytest.raises(ConflictError, match="already exists"):
            make_wallet(service, "cash")

    def test_same_name_for_other_user_allowed(self, db_session):
        service = LedgerService(db_session)
        make_wallet(service, "Cash")
        other = make_wallet(service, "Cash", user_id=OTHER_USER)
        assert other.is_default is True


class TestManageWallets:

    def test_rename(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, "Cash")
        service.update_wallet(wallet.id, WalletUpdate(name="Pocket money"))
        assert service.get_wallet(wallet.id).name == "Pocket money"

    def test_rename_to_existing_name_rejected(self, db_session):
        service = LedgerService(db_session)
        make_wallet(service, "Cash")
        bank = make_wallet(service, "Bank")
        with pytest.raises(ConflictError):
            service.update_wallet(bank.id, WalletUpdate(name="CASH"))

    def test_set_default_moves_flag(self, db_session):
        service = LedgerService(db_session)
        cash = make_wallet(service, "Cash")
        bank = make_wallet(service, "Bank")

        service.set_default_wallet(bank.id)

        assert bank.is_default is True
        assert cash.is_default is False

    def test_delete_empty_wallet(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service)
        service.delete_wallet(wallet.id)
        db_session.commit()

        with pytest.raises(NotFoundError):
            service.get_wallet(wallet.id)

    def test_delete_wallet_with_transactions_needs_cascade(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=100_000)
        db_session.commit()

        with pytest.raises(ConflictError, match="still has 1 transactions"):
            service.delete_wallet(wallet.id)

    def test_cascade_delete_removes_transactions(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=100_000)
        spend(service, wallet, 20_000)
        db_session.commit()
        wallet_id = wallet.id

        service.delete_wallet(wallet_id, cascade=True)
        db_session.commit()

        with pytest.raises(NotFoundError):
            service.get_wallet(wallet_id)

    def test_deleting_default_promotes_oldest_remaining(self, db_session):
        service = LedgerService(db_session)
        cash = make_wallet(service, "Cash")
        bank = make_wallet(service, "Bank")
        card = make_wallet(service, "Card")

        service.delete_wallet(cash.id)

        assert bank.is_default is True
        assert card.is_default is False


# --- Transactions ---

class TestTransactions:

    def test_expense_is_stored_negative(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=100_000)

        txn = spend(service, wallet, 15_000)

        assert txn.amount == -15_000
        assert txn.magnitude == 15_000
        assert wallet.balance == 85_000
        assert_consistent(service, wallet)

    def test_income_is_stored_positive(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service)

        earn(service, wallet, 2_000_000)

        assert wallet.balance == 2_000_000

    def test_zero_amount_rejected_without_side_effects(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=50_000)

        with pytest.raises(ValidationError, match="positive"):
            spend(service, wallet, 0)

        assert wallet.balance == 50_000
        assert len(service.list_transactions(wallet.id)) == 1

    def test_unknown_wallet(self, db_session):
        service = LedgerService(db_session)
        with pytest.raises(NotFoundError):
            service.create_transaction(TransactionCreate(
                wallet_id=999,
                category_id=category(service, "Bills").id,
                kind=TransactionKind.EXPENSE,
                magnitude=1,
                occurred_on=DAY,
            ))

    def test_category_kind_must_match(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service)
        with pytest.raises(ValidationError, match="income category"):
            service.create_transaction(TransactionCreate(
                wallet_id=wallet.id,
                category_id=category(service, "Salary").id,
                kind=TransactionKind.EXPENSE,
                magnitude=1_000,
                occurred_on=DAY,
            ))

    def test_other_users_category_is_invisible(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service)
        private = service.create_category(CategoryCreate(
            user_id=OTHER_USER, name="Pets", kind=TransactionKind.EXPENSE,
        ))
        with pytest.raises(NotFoundError):
            service.create_transaction(TransactionCreate(
                wallet_id=wallet.id,
                category_id=private.id,
                kind=TransactionKind.EXPENSE,
                magnitude=1_000,
                occurred_on=DAY,
            ))

    def test_long_note_is_truncated(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=10_000)
        txn = spend(service, wallet, 1_000, note="x" * 400)
        assert len(txn.note) == 250

    def test_update_moves_balance_by_difference(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=100_000)
        txn = spend(service, wallet, 30_000)

        service.update_transaction(txn.id, TransactionUpdate(magnitude=10_000))

        assert txn.amount == -10_000
        assert wallet.balance == 90_000
        assert_consistent(service, wallet)

    def test_update_kind_flips_sign(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=100_000)
        txn = spend(service, wallet, 30_000)

        service.update_transaction(txn.id, TransactionUpdate(
            kind=TransactionKind.INCOME,
            category_id=category(service, "Salary").id,
        ))

        assert txn.amount == 30_000
        assert wallet.balance == 130_000
        assert_consistent(service, wallet)

    def test_update_then_revert_restores_balance(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=100_000)
        txn = spend(service, wallet, 30_000)
        before = wallet.balance

        service.update_transaction(txn.id, TransactionUpdate(magnitude=45_000))
        service.update_transaction(txn.id, TransactionUpdate(magnitude=30_000))

        assert wallet.balance == before

    def test_rejected_update_changes_nothing(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=100_000)
        txn = spend(service, wallet, 30_000)

        with pytest.raises(ValidationError):
            service.update_transaction(txn.id, TransactionUpdate(
                kind=TransactionKind.INCOME,
            ))

        assert txn.amount == -30_000
        assert wallet.balance == 70_000

    def test_delete_reverses_effect(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=100_000)
        txn = spend(service, wallet, 30_000)

        service.delete_transaction(txn.id)

        assert wallet.balance == 100_000
        assert_consistent(service, wallet)
        with pytest.raises(NotFoundError):
            service.get_transaction(txn.id)

    def test_bulk_delete(self, db_session):
        service = LedgerService(db_session)
        cash = make_wallet(service, "Cash", initial=100_000)
        bank = make_wallet(service, "Bank", initial=200_000)
        a = spend(service, cash, 10_000)
        b = spend(service, bank, 20_000)
        spend(service, bank, 5_000)

        deleted = service.delete_transactions([a.id, b.id])

        assert deleted == 2
        assert cash.balance == 100_000
        assert bank.balance == 195_000
        assert_consistent(service, cash)
        assert_consistent(service, bank)

    def test_bulk_delete_with_unknown_id_deletes_nothing(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=100_000)
        txn = spend(service, wallet, 10_000)

        with pytest.raises(NotFoundError, match="999"):
            service.delete_transactions([txn.id, 999])

        assert service.get_transaction(txn.id) is txn
        assert wallet.balance == 90_000

    def test_list_newest_first(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=100_000)
        later = service.create_transaction(TransactionCreate(
            wallet_id=wallet.id,
            category_id=category(service, "Bills").id,
            kind=TransactionKind.EXPENSE,
            magnitude=1_000,
            occurred_on=date(2024, 4, 1),
        ))

        txns = service.list_transactions(wallet.id)

        assert txns[0].id == later.id

    def test_balance_matches_sum_after_mixed_operations(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=1_000_000)
        coffee = spend(service, wallet, 15_000)
        lunch = spend(service, wallet, 50_000)
        earn(service, wallet, 300_000)
        service.update_transaction(lunch.id, TransactionUpdate(magnitude=65_000))
        service.delete_transaction(coffee.id)
        db_session.commit()

        db_session.refresh(wallet)
        assert wallet.balance == 1_000_000 - 65_000 + 300_000
        assert_consistent(service, wallet)


class TestQuickCommit:

    def test_drafts_written_in_order(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=200_000)
        food = category(service, "Food & Drinks")
        fun = category(service, "Entertainment")

        txns = service.create_quick_transactions(QuickCommitRequest(
            wallet_id=wallet.id,
            occurred_on=DAY,
            drafts=[
                TransactionDraft(description="đi chơi", amount=90_000,
                                 category_id=fun.id),
                TransactionDraft(description="cà phê", amount=15_000,
                                 category_id=food.id),
            ],
        ))

        assert [t.note for t in txns] == ["đi chơi", "cà phê"]
        assert wallet.balance == 95_000
        assert_consistent(service, wallet)

    def test_one_bad_draft_rejects_all(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=200_000)
        food = category(service, "Food & Drinks")

        with pytest.raises(ValidationError, match="no category"):
            service.create_quick_transactions(QuickCommitRequest(
                wallet_id=wallet.id,
                occurred_on=DAY,
                drafts=[
                    TransactionDraft(description="cà phê", amount=15_000,
                                     category_id=food.id),
                    TransactionDraft(description="mystery", amount=5_000),
                ],
            ))

        assert wallet.balance == 200_000
        assert len(service.list_transactions(wallet.id)) == 1


class TestTransfer:

    def test_transfer_moves_money(self, db_session):
        service = LedgerService(db_session)
        cash = make_wallet(service, "Cash", initial=100_000)
        bank = make_wallet(service, "Bank")

        outgoing, incoming = service.transfer(TransferRequest(
            source_wallet_id=cash.id,
            destination_wallet_id=bank.id,
            amount=40_000,
            occurred_on=DAY,
        ))

        assert outgoing.amount == -40_000
        assert incoming.amount == 40_000
        assert cash.balance == 60_000
        assert bank.balance == 40_000
        assert_consistent(service, cash)
        assert_consistent(service, bank)

    def test_insufficient_balance(self, db_session):
        service = LedgerService(db_session)
        cash = make_wallet(service, "Cash", initial=10_000)
        bank = make_wallet(service, "Bank")

        with pytest.raises(ValidationError, match="Insufficient"):
            service.transfer(TransferRequest(
                source_wallet_id=cash.id,
                destination_wallet_id=bank.id,
                amount=40_000,
                occurred_on=DAY,
            ))
        assert cash.balance == 10_000

    def test_currency_mismatch(self, db_session):
        service = LedgerService(db_session)
        cash = make_wallet(service, "Cash", initial=10_000)
        usd = make_wallet(service, "Dollars", currency="USD")

        with pytest.raises(ValidationError, match="VND and USD"):
            service.transfer(TransferRequest(
                source_wallet_id=cash.id,
                destination_wallet_id=usd.id,
                amount=1_000,
                occurred_on=DAY,
            ))

    def test_same_wallet_rejected(self, db_session):
        service = LedgerService(db_session)
        cash = make_wallet(service, "Cash", initial=10_000)
        with pytest.raises(ValidationError, match="same wallet"):
            service.transfer(TransferRequest(
                source_wallet_id=cash.id,
                destination_wallet_id=cash.id,
                amount=1_000,
                occurred_on=DAY,
            ))


# --- Categories ---

class TestCategories:

    def test_system_categories_are_seeded(self, db_session):
        service = LedgerService(db_session)
        names = {c.name for c in service.list_categories(USER, CategoryScope.SYSTEM)}
        assert {"Food & Drinks", "Salary", "Savings"} <= names

    def test_seeding_twice_creates_nothing(self, db_session):
        service = LedgerService(db_session)
        assert service.seed_system_categories() == []

    def test_scopes(self, db_session):
        service = LedgerService(db_session)
        mine = service.create_category(CategoryCreate(
            user_id=USER, name="Pets", kind=TransactionKind.EXPENSE,
        ))
        service.create_category(CategoryCreate(
            user_id=OTHER_USER, name="Garden", kind=TransactionKind.EXPENSE,
        ))

        user_only = service.list_categories(USER, CategoryScope.USER)
        everything = service.list_categories(USER)

        assert [c.id for c in user_only] == [mine.id]
        assert mine in everything
        assert "Garden" not in {c.name for c in everything}

    def test_duplicate_category_rejected(self, db_session):
        service = LedgerService(db_session)
        request = CategoryCreate(
            user_id=USER, name="Pets", kind=TransactionKind.EXPENSE,
        )
        service.create_category(request)
        with pytest.raises(ConflictError):
            service.create_category(request)

    def test_rename(self, db_session):
        service = LedgerService(db_session)
        pets = service.create_category(CategoryCreate(
            user_id=USER, name="Pets", kind=TransactionKind.EXPENSE,
        ))
        service.rename_category(pets.id, CategoryUpdate(name="Pet care"))
        assert pets.name == "Pet care"

    def test_system_category_cannot_be_renamed(self, db_session):
        service = LedgerService(db_session)
        with pytest.raises(ConflictError):
            service.rename_category(
                category(service, "Bills").id, CategoryUpdate(name="Utilities")
            )

    def test_delete_unused_category(self, db_session):
        service = LedgerService(db_session)
        pets = service.create_category(CategoryCreate(
            user_id=USER, name="Pets", kind=TransactionKind.EXPENSE,
        ))
        service.delete_category(pets.id)
        with pytest.raises(NotFoundError):
            service.get_category(pets.id)

    def test_delete_category_in_use_rejected(self, db_session):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=100_000)
        pets = service.create_category(CategoryCreate(
            user_id=USER, name="Pets", kind=TransactionKind.EXPENSE,
        ))
        service.create_transaction(TransactionCreate(
            wallet_id=wallet.id,
            category_id=pets.id,
            kind=TransactionKind.EXPENSE,
            magnitude=5_000,
            occurred_on=DAY,
        ))

        with pytest.raises(ConflictError, match="still in use"):
            service.delete_category(pets.id)


# --- Concurrency ---

def run_committed(session_factory, errors, work):
    """Run work(service) in its own session and commit, like one request."""
    db = session_factory()
    try:
        work(LedgerService(db))
        db.commit()
    except Exception as e:
        db.rollback()
        errors.append(e)
    finally:
        db.close()


class TestConcurrentWalletChanges:

    def test_parallel_expenses_all_land(self, db_session, session_factory):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=1_000_000)
        food_id = category(service, "Food & Drinks").id
        db_session.commit()
        wallet_id = wallet.id
        errors = []

        def spend_many(ledger):
            for _ in range(20):
                ledger.create_transaction(TransactionCreate(
                    wallet_id=wallet_id,
                    category_id=food_id,
                    kind=TransactionKind.EXPENSE,
                    magnitude=1_000,
                    occurred_on=DAY,
                ))
                ledger.db.commit()

        threads = [
            threading.Thread(
                target=run_committed, args=(session_factory, errors, spend_many)
            )
            for _ in range(4)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        check = LedgerService(session_factory())
        try:
            assert check.get_wallet(wallet_id).balance == 920_000
            assert check.recompute_balance(wallet_id) == 920_000
        finally:
            check.db.close()

    def test_mixed_changes_and_scheduler_keep_balance_consistent(
        self, db_session, session_factory, clock
    ):
        service = LedgerService(db_session)
        wallet = make_wallet(service, initial=1_000_000)
        food_id = category(service, "Food & Drinks").id
        existing = [spend(service, wallet, 2_000).id for _ in range(20)]
        RecurringExpenseEngine(db_session, service).create_rule(
            RecurringRuleCreate(
                wallet_id=wallet.id,
                category_id=category(service, "Bills").id,
                name="Phone",
                amount=100_000,
                first_due_on=DAY,
            )
        )
        db_session.commit()
        wallet_id = wallet.id
        errors = []

        def spend_many(ledger):
            for _ in range(20):
                ledger.create_transaction(TransactionCreate(
                    wallet_id=wallet_id,
                    category_id=food_id,
                    kind=TransactionKind.EXPENSE,
                    magnitude=1_000,
                    occurred_on=DAY,
                ))
                ledger.db.commit()

        def update_some(ledger):
            for txn_id in existing[:10]:
                ledger.update_transaction(
                    txn_id, TransactionUpdate(magnitude=5_000)
                )
                ledger.db.commit()

        def delete_some(ledger):
            for txn_id in existing[10:]:
                ledger.delete_transaction(txn_id)
                ledger.db.commit()

        def run_scheduler():
            try:
                ReminderScheduler(session_factory, clock=clock).run_once()
            except Exception as e:
                errors.append(e)

        threads = [
            threading.Thread(
                target=run_committed, args=(session_factory, errors, work)
            )
            for work in (spend_many, spend_many, update_some, delete_some)
        ]
        threads.append(threading.Thread(target=run_scheduler))
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        check = LedgerService(session_factory())
        try:
            balance = check.get_wallet(wallet_id).balance
            assert balance == check.recompute_balance(wallet_id)
            # 40 expenses of 1k, ten 5k updates, one 100k bill
            assert balance == 1_000_000 - 40_000 - 50_000 - 100_000
        finally:
            check.db.close()
