# -*- coding: utf-8 -*-
"""
Customer resolver.

Maps the identity fields of a checkout (email, CPF, name, phone) to exactly
one customer. Account and profile live in different stores without a shared
transaction, so creation leans on the unique constraints of each store to
settle races, and compensates by deleting the account when the profile
cannot be written. A profile insert that fails because another checkout
already linked a matching profile to the same account counts as success;
deleting that account would strand the profile.
"""
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from weddingpay.errors import CustomerCreationFailed, IdentityConflict, ValidationError
from weddingpay.models.customer import Customer
from weddingpay.services.audit import AuditTrail, MemoryAuditTrail
from weddingpay.services.identity_provider import AccountAlreadyExists, IdentityProvider, IdentityRecord
from weddingpay.services.retry import RetryPolicy, with_retry
from weddingpay.services.structured_logging import get_logger

logger = get_logger('weddingpay.customers')

_NON_DIGITS = re.compile(r"\D")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def only_digits(value: Optional[str]) -> str:
    return _NON_DIGITS.sub("", value or "")


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def normalize_cpf(cpf: Optional[str]) -> str:
    digits = only_digits(cpf)
    if len(digits) != 11:
        raise ValidationError("CPF must have exactly 11 digits")
    return digits


@dataclass(frozen=True)
class ResolvedCustomer:
    customer_id: str
    is_existing: bool


class _StaleAccountRead(Exception):
    """Account creation lost a race but the winner is not visible yet."""


class CustomerResolver:

    def __init__(self, db_session: Session, identity_provider: IdentityProvider,
                 audit: Optional[AuditTrail] = None,
                 retry_policy: Optional[RetryPolicy] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.db = db_session
        self.identity = identity_provider
        self.audit = audit if audit is not None else MemoryAuditTrail()
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    def resolve(self, email: str, cpf: str, name: Optional[str], phone: Optional[str]) -> ResolvedCustomer:
        email = normalize_email(email)
        if not _EMAIL_RE.match(email):
            raise ValidationError("A valid email is required")
        cpf = normalize_cpf(cpf)
        phone = only_digits(phone) or None
        name = (name or "").strip() or None

        account = self.identity.find_by_email(email)
        profile = self._profile_by_cpf(cpf)

        if profile is not None and normalize_email(profile.email) != email:
            self._conflict("cpf_bound_to_other_email", profile_id=profile.id)
            raise IdentityConflict("This CPF is already registered with a different email")

        if account is not None and profile is not None and profile.id != account.id:
            self._conflict("account_profile_mismatch", profile_id=profile.id, account_id=account.id)
            raise IdentityConflict("Customer records for this email and CPF do not match")

        if account is not None:
            return self._use_existing(account, email, cpf, name, phone)

        if profile is not None:
            # profile without a login account cannot be linked safely
            self._conflict("profile_without_account", profile_id=profile.id)
            raise IdentityConflict("Customer profile exists without a login account")

        try:
            return with_retry(
                lambda: self._create_once(email, cpf, name, phone),
                self.retry_policy,
                retry_on=(OperationalError, _StaleAccountRead),
                sleep=self._sleep,
            )
        except (OperationalError, _StaleAccountRead) as e:
            logger.error("Customer creation did not converge", error=str(e))
            self.audit.record("customer.creation_failed", level="error",
                              resource_type="customer", reason=type(e).__name__)
            raise CustomerCreationFailed("Could not create customer, please try again") from e

    # -- lookups -----------------------------------------------------------

    def _profile_by_cpf(self, cpf: str) -> Optional[Customer]:
        return self.db.query(Customer).filter_by(cpf=cpf).first()

    def _stored_profile_matches(self, customer_id: str, email: str, cpf: str) -> bool:
        try:
            stored = self.db.get(Customer, customer_id)
        except SQLAlchemyError:
            self.db.rollback()
            return False
        return stored is not None and normalize_email(stored.email) == email and stored.cpf == cpf

    def _conflict(self, reason: str, **context):
        logger.warning("Identity conflict", reason=reason, **context)
        self.audit.record("customer.identity_conflict", level="warning",
                          resource_type="customer", reason=reason, **context)

    # -- existing account --------------------------------------------------

    def _use_existing(self, account: IdentityRecord, email: str, cpf: str,
                      name: Optional[str], phone: Optional[str]) -> ResolvedCustomer:
        profile = self.db.get(Customer, account.id)
        try:
            if profile is None:
                self.db.add(self._new_profile(account.id, email, cpf, name, phone))
            else:
                profile.email = email
                profile.cpf = cpf
                if name:
                    profile.name = name
                if phone:
                    profile.phone = phone
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            if profile is None and self._stored_profile_matches(account.id, email, cpf):
                # the request that created the account wrote its profile first
                logger.info("Profile written concurrently by account creator", customer_id=account.id)
            elif profile is None:
                logger.error("Profile insert for existing account failed",
                             customer_id=account.id, error=str(e))
                raise CustomerCreationFailed("Could not store customer profile") from e
            else:
                logger.warning("Profile refresh failed, continuing with stored data",
                               customer_id=account.id, error=str(e))

        self.audit.record("customer.resolved", resource_type="customer",
                          resource_id=account.id, is_existing=True)
        return ResolvedCustomer(customer_id=account.id, is_existing=True)

    # -- creation ----------------------------------------------------------

    @staticmethod
    def _new_profile(customer_id: str, email: str, cpf: str,
                     name: Optional[str], phone: Optional[str]) -> Customer:
        return Customer(
            id=customer_id,
            email=email,
            cpf=cpf,
            name=name,
            phone=phone,
            access=[],
            first_access=True,
            password_changed=False,
            is_admin=False,
        )

    def _create_once(self, email: str, cpf: str, name: Optional[str], phone: Optional[str]) -> ResolvedCustomer:
        account = self.identity.find_by_email(email)
        if account is not None:
            return self._use_existing(account, email, cpf, name, phone)

        metadata = {"name": name, "phone": phone, "cpf": cpf, "created_via": "checkout"}
        try:
            account = self.identity.create_account(email, password=cpf, metadata=metadata)
        except AccountAlreadyExists:
            winner = self.identity.find_by_email(email)
            if winner is None:
                raise _StaleAccountRead(email)
            logger.info("Concurrent checkout created the account first", customer_id=winner.id)
            self.audit.record("customer.creation_race_lost", resource_type="customer",
                              resource_id=winner.id)
            return ResolvedCustomer(customer_id=winner.id, is_existing=True)

        try:
            self.db.add(self._new_profile(account.id, email, cpf, name, phone))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            if self._stored_profile_matches(account.id, email, cpf):
                # a concurrent checkout linked the profile to this account already
                logger.info("Profile for new account written concurrently", customer_id=account.id)
                self.audit.record("customer.created", resource_type="customer", resource_id=account.id)
                return ResolvedCustomer(customer_id=account.id, is_existing=False)
            self._compensate(account, e)
            raise CustomerCreationFailed("Could not store customer profile") from e

        logger.info("Customer created", customer_id=account.id)
        self.audit.record("customer.created", resource_type="customer", resource_id=account.id)
        return ResolvedCustomer(customer_id=account.id, is_existing=False)

    def _compensate(self, account: IdentityRecord, cause: SQLAlchemyError):
        reason = "integrity_error" if isinstance(cause, IntegrityError) else type(cause).__name__
        try:
            self.identity.delete_account(account.id)
        except Exception as e:
            logger.critical(
                "Orphan identity account needs manual cleanup",
                account_id=account.id,
                profile_error=str(cause),
                delete_error=str(e),
            )
            self.audit.record("customer.orphan_account", level="critical",
                              resource_type="identity_account", resource_id=account.id)
            return
        logger.warning("Profile insert failed, account removed", account_id=account.id, reason=reason)
        self.audit.record("customer.creation_rolled_back", level="warning",
                          resource_type="identity_account", resource_id=account.id, reason=reason)
