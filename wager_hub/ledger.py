from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from wager_hub.config import Currency, WagerStatus, settings
from wager_hub.errors import (
    ActiveWagerExists,
    DuplicateMatch,
    InsufficientFundsError,
    PlayerAlreadyLinked,
    UserNotFound,
    ValidationError,
)
from wager_hub.logging_config import get_logger
from wager_hub.models import models

logger = get_logger(__name__)


class LedgerStore:
    """
    Balances and wagers behind a caller-owned SQLAlchemy session.

    Balance changes are single conditional UPDATE statements and wager
    transitions are compare-and-swap on ``status = 'pending'``, so concurrent
    callers touching the same account never overwrite each other.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator["LedgerStore"]:
        try:
            yield self
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # accounts

    def open_account(
        self,
        owner_id: str,
        virtual_balance: Decimal | None = None,
        real_balance: Decimal = Decimal("0"),
        reward_credits: Decimal = Decimal("0"),
        external_player_id: str | None = None,
        region: str | None = None,
        win_rate: float | None = None,
    ) -> models.Account:
        account = models.Account(
            owner_id=owner_id,
            virtual_balance=settings.starting_virtual_balance if virtual_balance is None else virtual_balance,
            real_balance=real_balance,
            reward_credits=reward_credits,
            external_player_id=external_player_id,
            region=region,
            win_rate=win_rate,
        )
        self.db.add(account)
        self.db.flush()
        return account

    def get_account(self, owner_id: str) -> Optional[models.Account]:
        return self.db.get(models.Account, owner_id)

    def find_account_by_player_id(self, external_player_id: str) -> Optional[models.Account]:
        return (
            self.db.query(models.Account)
            .filter(models.Account.external_player_id == external_player_id)
            .first()
        )

    def link_player(
        self,
        owner_id: str,
        external_player_id: str | None,
        region: str | None,
        win_rate: float | None,
    ) -> models.Account:
        account = self.get_account(owner_id)
        if account is None:
            raise UserNotFound()
        account.external_player_id = external_player_id
        account.region = region
        account.win_rate = win_rate
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise PlayerAlreadyLinked() from exc
        return account

    def debit(self, owner_id: str, currency: Currency, amount: Decimal) -> None:
        if amount < 0:
            raise ValidationError("debit amount must not be negative")
        column = getattr(models.Account, currency.value)
        updated = (
            self.db.query(models.Account)
            .filter(models.Account.owner_id == owner_id, column >= amount)
            .update({column: column - amount}, synchronize_session="fetch")
        )
        if updated == 0:
            if self.get_account(owner_id) is None:
                raise UserNotFound()
            raise InsufficientFundsError()
        logger.info("Debited owner=%s currency=%s amount=%s", owner_id, currency.value, amount)

    def credit(self, owner_id: str, currency: Currency, amount: Decimal) -> None:
        if amount < 0:
            raise ValidationError("credit amount must not be negative")
        column = getattr(models.Account, currency.value)
        updated = (
            self.db.query(models.Account)
            .filter(models.Account.owner_id == owner_id)
            .update({column: column + amount}, synchronize_session="fetch")
        )
        if updated == 0:
            raise UserNotFound()
        logger.info("Credited owner=%s currency=%s amount=%s", owner_id, currency.value, amount)

    # wagers

    def get_pending_wager(self, owner_id: str) -> Optional[models.Wager]:
        return (
            self.db.query(models.Wager)
            .filter(models.Wager.owner_id == owner_id)
            .filter(models.Wager.status == WagerStatus.PENDING.value)
            .first()
        )

    def add_wager(self, wager: models.Wager) -> models.Wager:
        self.db.add(wager)
        try:
            self.db.flush()
        except IntegrityError as exc:
            # Partial unique index on pending wagers lost a race with another placement.
            raise ActiveWagerExists() from exc
        return wager

    def list_pending_wagers(self) -> list[models.Wager]:
        return (
            self.db.query(models.Wager)
            .options(joinedload(models.Wager.owner))
            .filter(models.Wager.status == WagerStatus.PENDING.value)
            .order_by(models.Wager.placed_at.asc(), models.Wager.id.asc())
            .all()
        )

    def list_wagers(self, owner_id: str) -> list[models.Wager]:
        return (
            self.db.query(models.Wager)
            .filter(models.Wager.owner_id == owner_id)
            .order_by(models.Wager.placed_at.asc(), models.Wager.id.asc())
            .all()
        )

    def match_already_settled(self, owner_id: str, match_id: str) -> bool:
        existing = (
            self.db.query(models.Wager.id)
            .filter(models.Wager.owner_id == owner_id)
            .filter(models.Wager.external_match_id == match_id)
            .filter(models.Wager.status != WagerStatus.PENDING.value)
            .first()
        )
        return existing is not None

    def mark_settled(
        self,
        wager_id: int,
        status: WagerStatus,
        resolved_at: datetime,
        match_id: str,
        snapshot: dict,
    ) -> bool:
        """
        Move a wager out of pending. Returns False when it was no longer pending.
        """
        try:
            updated = (
                self.db.query(models.Wager)
                .filter(models.Wager.id == wager_id)
                .filter(models.Wager.status == WagerStatus.PENDING.value)
                .update(
                    {
                        models.Wager.status: status.value,
                        models.Wager.resolved_at: resolved_at,
                        models.Wager.external_match_id: match_id,
                        models.Wager.result_snapshot: snapshot,
                    },
                    synchronize_session="fetch",
                )
            )
        except IntegrityError as exc:
            raise DuplicateMatch() from exc
        return updated == 1

    def mark_cancelled(self, wager_id: int, resolved_at: datetime) -> bool:
        updated = (
            self.db.query(models.Wager)
            .filter(models.Wager.id == wager_id)
            .filter(models.Wager.status == WagerStatus.PENDING.value)
            .update(
                {
                    models.Wager.status: WagerStatus.CANCELLED.value,
                    models.Wager.resolved_at: resolved_at,
                },
                synchronize_session="fetch",
            )
        )
        return updated == 1

    def leaderboard(self, limit: int = 50) -> list[tuple[models.Account, int, int]]:
        """
        Accounts ranked by virtual balance, each with its won and settled wager counts.
        """
        settled = (WagerStatus.WON.value, WagerStatus.LOST.value)
        wins = func.count(case((models.Wager.status == WagerStatus.WON.value, 1)))
        total = func.count(case((models.Wager.status.in_(settled), 1)))
        rows = (
            self.db.query(models.Account, wins.label("wins"), total.label("total"))
            .outerjoin(models.Wager, models.Wager.owner_id == models.Account.owner_id)
            .group_by(models.Account.owner_id)
            .order_by(models.Account.virtual_balance.desc(), models.Account.owner_id.asc())
            .limit(limit)
            .all()
        )
        return [(account, wins, total) for account, wins, total in rows]
