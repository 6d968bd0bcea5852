"""
Ledger storage boundary.

The import pipeline only talks to a ``Ledger``; ``MemoryLedger`` is the
in-memory implementation backed by a YAML document, used by the command line
and the tests.
"""
import logging
import pathlib
import typing
import uuid

import yaml

from .data_types import Account
from .data_types import Category
from .data_types import CategoryGroup
from .data_types import LedgerDoc
from .data_types import LedgerTransaction
from .data_types import Payee


class TransactionError(Exception):
    pass


def new_id() -> str:
    return str(uuid.uuid4())


class Ledger(typing.Protocol):
    def find_account_by_name(self, name: str) -> Account | None:
        ...

    def get_account(self, account_id: str) -> Account | None:
        ...

    def find_or_create_account(self, name: str, offbudget: bool = False) -> Account:
        ...

    def account_transactions(self, account_id: str) -> list[LedgerTransaction]:
        ...

    def get_transaction(self, txn_id: str) -> LedgerTransaction | None:
        ...

    def insert_transaction(self, **fields) -> LedgerTransaction:
        ...

    def update_transaction(self, txn_id: str, **changes) -> LedgerTransaction:
        ...

    def find_or_create_payee(self, name: str) -> Payee:
        ...

    def payee_name(self, payee_id: str | None) -> str | None:
        ...

    def transfer_payee(self, account_id: str) -> Payee | None:
        ...

    def find_category(self, group_name: str, category_name: str) -> Category | None:
        ...

    def category_key(self, category_id: str | None) -> str | None:
        ...

    def account_balance(self, account_id: str) -> int:
        ...


class MemoryLedger:
    doc: LedgerDoc

    def __init__(self, doc: LedgerDoc | None = None):
        self.doc = doc if doc is not None else LedgerDoc()

    @classmethod
    def load(cls, path: pathlib.Path) -> "MemoryLedger":
        logger = logging.getLogger(__name__)
        if not path.exists():
            logger.info("Ledger file %s does not exist, starting empty", path)
            return cls()
        with path.open("rt", encoding="utf-8") as fo:
            payload = yaml.safe_load(fo)
        return cls(LedgerDoc.model_validate(payload or {}))

    def dump(self, path: pathlib.Path):
        with path.open("wt", encoding="utf-8") as fo:
            yaml.safe_dump(
                self.doc.model_dump(mode="json"),
                fo,
                sort_keys=False,
                allow_unicode=True,
            )

    # accounts

    def find_account_by_name(self, name: str) -> Account | None:
        return next(
            (
                account
                for account in self.doc.accounts
                if account.name == name and not account.tombstone
            ),
            None,
        )

    def get_account(self, account_id: str) -> Account | None:
        return next(
            (
                account
                for account in self.doc.accounts
                if account.id == account_id and not account.tombstone
            ),
            None,
        )

    def find_or_create_account(self, name: str, offbudget: bool = False) -> Account:
        logger = logging.getLogger(__name__)
        account = self.find_account_by_name(name)
        if account is not None:
            return account
        account = Account(id=new_id(), name=name, offbudget=offbudget)
        self.doc.accounts.append(account)
        self.doc.payees.append(Payee(id=new_id(), name="", transfer_acct=account.id))
        logger.info("Created account %s (offbudget=%s)", name, offbudget)
        return account

    # transactions

    def account_transactions(self, account_id: str) -> list[LedgerTransaction]:
        return [
            txn
            for txn in self.doc.transactions
            if txn.account == account_id and not txn.tombstone
        ]

    def get_transaction(self, txn_id: str) -> LedgerTransaction | None:
        return next((txn for txn in self.doc.transactions if txn.id == txn_id), None)

    def insert_transaction(self, **fields) -> LedgerTransaction:
        if self.get_account(fields.get("account", "")) is None:
            raise TransactionError(f"Unknown account {fields.get('account')}")
        txn = LedgerTransaction(id=new_id(), **fields)
        self.doc.transactions.append(txn)
        return txn

    def update_transaction(self, txn_id: str, **changes) -> LedgerTransaction:
        for index, txn in enumerate(self.doc.transactions):
            if txn.id == txn_id:
                updated = txn.model_copy(update=changes)
                self.doc.transactions[index] = updated
                return updated
        raise TransactionError(f"Unknown transaction {txn_id}")

    # payees

    def find_or_create_payee(self, name: str) -> Payee:
        for payee in self.doc.payees:
            if (
                payee.transfer_acct is None
                and not payee.tombstone
                and payee.name.lower() == name.lower()
            ):
                return payee
        payee = Payee(id=new_id(), name=name)
        self.doc.payees.append(payee)
        return payee

    def payee_name(self, payee_id: str | None) -> str | None:
        if payee_id is None:
            return None
        for payee in self.doc.payees:
            if payee.id != payee_id:
                continue
            if payee.transfer_acct is not None:
                account = self.get_account(payee.transfer_acct)
                return account.name if account is not None else None
            return payee.name
        return None

    def transfer_payee(self, account_id: str) -> Payee | None:
        return next(
            (
                payee
                for payee in self.doc.payees
                if payee.transfer_acct == account_id and not payee.tombstone
            ),
            None,
        )

    # categories

    def find_category(self, group_name: str, category_name: str) -> Category | None:
        group_ids = {
            group.id
            for group in self.doc.category_groups
            if group.name == group_name and not group.tombstone
        }
        return next(
            (
                category
                for category in self.doc.categories
                if category.cat_group in group_ids
                and category.name == category_name
                and not category.tombstone
            ),
            None,
        )

    def add_category(self, group_name: str, category_name: str, is_income: bool = False) -> Category:
        group = next(
            (group for group in self.doc.category_groups if group.name == group_name),
            None,
        )
        if group is None:
            group = CategoryGroup(id=new_id(), name=group_name, is_income=is_income)
            self.doc.category_groups.append(group)
        category = Category(id=new_id(), name=category_name, cat_group=group.id)
        self.doc.categories.append(category)
        return category

    def category_key(self, category_id: str | None) -> str | None:
        if category_id is None:
            return None
        category = next(
            (category for category in self.doc.categories if category.id == category_id),
            None,
        )
        if category is None:
            return None
        group = next(
            (group for group in self.doc.category_groups if group.id == category.cat_group),
            None,
        )
        if group is None:
            return None
        return f"{group.name}:{category.name}"

    def account_balance(self, account_id: str) -> int:
        return sum(txn.amount for txn in self.account_transactions(account_id))
