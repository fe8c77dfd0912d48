# -*- coding: utf-8 -*-
"""
Identity provider port.

Login accounts live apart from customer profiles and are written in their own
short-lived sessions, so an account write is committed (or not) independently
of whatever the caller has pending. Email uniqueness of accounts is enforced
by the store and surfaces as ``AccountAlreadyExists``.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from weddingpay.infra.db import db
from weddingpay.models.identity_account import IdentityAccount
from weddingpay.services.structured_logging import get_logger

logger = get_logger('weddingpay.customers')


class AccountAlreadyExists(Exception):
    """Another account already owns this email."""

    def __init__(self, email: str):
        super().__init__(f"An account already exists for {email}")
        self.email = email


@dataclass(frozen=True)
class IdentityRecord:
    id: str
    email: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class IdentityProvider:
    """Interface the customer resolver depends on."""

    def find_by_email(self, email: str) -> Optional[IdentityRecord]:
        raise NotImplementedError

    def create_account(self, email: str, password: str, metadata: Dict[str, Any]) -> IdentityRecord:
        raise NotImplementedError

    def delete_account(self, account_id: str) -> None:
        raise NotImplementedError


class SqlIdentityProvider(IdentityProvider):
    """Identity accounts stored in the ``identity_accounts`` table."""

    def __init__(self, engine=None):
        self._engine = engine

    def _session(self) -> Session:
        engine = self._engine if self._engine is not None else db.engine
        return Session(bind=engine, expire_on_commit=False)

    @staticmethod
    def _to_record(account: IdentityAccount) -> IdentityRecord:
        return IdentityRecord(id=account.id, email=account.email, metadata=dict(account.user_metadata or {}))

    def find_by_email(self, email: str) -> Optional[IdentityRecord]:
        with self._session() as session:
            account = session.query(IdentityAccount).filter_by(email=email).first()
            return self._to_record(account) if account else None

    def create_account(self, email: str, password: str, metadata: Dict[str, Any]) -> IdentityRecord:
        with self._session() as session:
            account = IdentityAccount(email=email, user_metadata=dict(metadata or {}))
            account.set_password(password)
            session.add(account)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise AccountAlreadyExists(email) from e
            logger.info("Identity account created", account_id=account.id)
            return self._to_record(account)

    def delete_account(self, account_id: str) -> None:
        with self._session() as session:
            session.query(IdentityAccount).filter_by(id=account_id).delete()
            session.commit()
            logger.info("Identity account deleted", account_id=account_id)
