"""
Identity domain service - Identity State Machine implementation.

This module contains the core business logic for registration, login,
email verification and password reset.

Identity State Machine (Forward-Only Transitions)
=================================================

States:
- NON_EXISTENT: No record for the username/email
- UNVERIFIED: Registered, email not yet confirmed
- VERIFIED: Email confirmed through a verification token

Valid Transitions:
    NON_EXISTENT -> UNVERIFIED   (register)
    UNVERIFIED   -> VERIFIED     (verify_email)
    VERIFIED     -> VERIFIED     (verify_email again, harmless rewrite)

Password reset replaces the digest in either state.

Concurrency: register, verify_email and complete_password_reset perform a
locked read followed by a write inside one store transaction, so two
requests for the same key are linearized by the store. login and
request_password_reset are read-only and take no lock.

Every operation returns an IdentityResult; store and gateway failures are
classified as INTERNAL_ERROR with a generic message and logged here.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from email_validator import EmailNotValidError, validate_email

from .exceptions import IdentityAlreadyExists, InvalidToken, NotificationFailed, StoreError
from .models import IdentityResult, Outcome
from .ports import (
    CredentialStore,
    NotificationGateway,
    NotificationKind,
    PasswordHasher,
    TokenPurpose,
    TokenService,
)

logger = logging.getLogger(__name__)

MSG_MISSING_FIELDS = "Missing required fields"
MSG_INVALID_EMAIL = "Invalid email address"
MSG_USER_EXISTS = "User already exists"
MSG_REGISTERED = "User registered. Check your email to confirm your account."
MSG_REGISTER_FAILED = "Error registering user"
MSG_MISSING_CREDENTIALS = "Missing credentials"
MSG_USER_NOT_FOUND = "User not found"
MSG_WRONG_PASSWORD = "Incorrect password"
MSG_LOGGED_IN = "Login successful"
MSG_LOGIN_FAILED = "Error logging in"
MSG_INVALID_TOKEN = "Invalid or expired token"
MSG_VERIFIED = "Account verified successfully"
MSG_VERIFY_FAILED = "Error verifying account"
MSG_NO_USER_FOR_EMAIL = "No user exists with that email"
MSG_RESET_SENT = "Password reset email sent"
MSG_RESET_REQUEST_FAILED = "Error requesting password reset"
MSG_MISSING_NEW_PASSWORD = "Missing new password"
MSG_PASSWORD_UPDATED = "Password updated successfully"
MSG_RESET_FAILED = "Error resetting password"


@dataclass
class IdentityService:
    """
    Domain service for the identity lifecycle.

    Orchestrates input validation, store transactions, password hashing,
    token issuing and notification delivery.
    """

    store: CredentialStore
    hasher: PasswordHasher
    tokens: TokenService
    notifier: NotificationGateway
    verification_ttl: timedelta = timedelta(hours=1)
    login_ttl: timedelta = timedelta(hours=1)
    reset_ttl: timedelta = timedelta(minutes=15)

    def register(self, username: str | None, email: str | None, secret: str | None) -> IdentityResult:
        """
        Register a new unverified user and send a verification token.

        Persisting the record and attempting the notification are atomic:
        if the gateway fails, the new record is rolled back.

        Args:
            username: Unique username
            email: Email address (validated and normalized)
            secret: Plaintext password (hashed before storage)

        Returns:
            CREATED, VALIDATION_ERROR, CONFLICT or INTERNAL_ERROR
        """
        username = self._clean(username)
        if not username or not email or not secret:
            return IdentityResult(Outcome.VALIDATION_ERROR, MSG_MISSING_FIELDS)

        normalized_email = self._validate_email(email)
        if normalized_email is None:
            return IdentityResult(Outcome.VALIDATION_ERROR, MSG_INVALID_EMAIL)

        try:
            with self.store.begin_transaction() as txn:
                if self.store.find_by_username(txn, username, lock_for_update=True) is not None:
                    txn.rollback()
                    return IdentityResult(Outcome.CONFLICT, MSG_USER_EXISTS)
                if self.store.find_by_email(txn, normalized_email, lock_for_update=True) is not None:
                    txn.rollback()
                    return IdentityResult(Outcome.CONFLICT, MSG_USER_EXISTS)

                digest = self.hasher.hash(secret)
                self.store.create(txn, username, normalized_email, digest)

                token = self.tokens.issue(
                    {"email": normalized_email}, self.verification_ttl, TokenPurpose.VERIFICATION
                )
                self.notifier.send(NotificationKind.VERIFICATION, normalized_email, token)
                txn.commit()
        except IdentityAlreadyExists:
            return IdentityResult(Outcome.CONFLICT, MSG_USER_EXISTS)
        except NotificationFailed:
            logger.warning("Verification delivery failed for %s; registration rolled back", username)
            return IdentityResult(Outcome.INTERNAL_ERROR, MSG_REGISTER_FAILED)
        except StoreError:
            logger.exception("Store failure while registering %s", username)
            return IdentityResult(Outcome.INTERNAL_ERROR, MSG_REGISTER_FAILED)

        logger.info("Registered user %s", username)
        return IdentityResult(Outcome.CREATED, MSG_REGISTERED)

    def login(self, username: str | None, secret: str | None) -> IdentityResult:
        """
        Check credentials and issue a login token.

        Verification state is not checked: unverified users can log in.
        Unknown usernames (NOT_FOUND) and wrong passwords (UNAUTHORIZED)
        are reported separately.

        Returns:
            AUTHENTICATED (with token), VALIDATION_ERROR, NOT_FOUND,
            UNAUTHORIZED or INTERNAL_ERROR
        """
        username = self._clean(username)
        if not username or not secret:
            return IdentityResult(Outcome.VALIDATION_ERROR, MSG_MISSING_CREDENTIALS)

        try:
            with self.store.begin_transaction() as txn:
                user = self.store.find_by_username(txn, username)
        except StoreError:
            logger.exception("Store failure while logging in %s", username)
            return IdentityResult(Outcome.INTERNAL_ERROR, MSG_LOGIN_FAILED)

        if user is None:
            return IdentityResult(Outcome.NOT_FOUND, MSG_USER_NOT_FOUND)

        if not self.hasher.verify(secret, user.password_digest):
            return IdentityResult(Outcome.UNAUTHORIZED, MSG_WRONG_PASSWORD)

        token = self.tokens.issue(
            {"id": user.id, "username": user.username}, self.login_ttl, TokenPurpose.LOGIN
        )
        return IdentityResult(Outcome.AUTHENTICATED, MSG_LOGGED_IN, token=token)

    def verify_email(self, token: str | None) -> IdentityResult:
        """
        Mark the user named by a verification token as verified.

        Re-verifying an already verified user rewrites True and succeeds.

        Returns:
            VERIFIED, INVALID_TOKEN, NOT_FOUND or INTERNAL_ERROR
        """
        email = self._email_claim(token, TokenPurpose.VERIFICATION)
        if email is None:
            return IdentityResult(Outcome.INVALID_TOKEN, MSG_INVALID_TOKEN)

        try:
            with self.store.begin_transaction() as txn:
                user = self.store.find_by_email(txn, email, lock_for_update=True)
                if user is None:
                    txn.rollback()
                    return IdentityResult(Outcome.NOT_FOUND, MSG_USER_NOT_FOUND)
                self.store.update(txn, user, verified=True)
                txn.commit()
        except StoreError:
            logger.exception("Store failure while verifying %s", email)
            return IdentityResult(Outcome.INTERNAL_ERROR, MSG_VERIFY_FAILED)

        logger.info("Verified email %s", email)
        return IdentityResult(Outcome.VERIFIED, MSG_VERIFIED)

    def request_password_reset(self, email: str | None) -> IdentityResult:
        """
        Send a short-lived reset token to a registered email.

        Nothing is persisted, so a gateway failure needs no rollback.

        Returns:
            SENT, VALIDATION_ERROR, NOT_FOUND or INTERNAL_ERROR
        """
        normalized_email = self._validate_email(email) if email else None
        if normalized_email is None:
            return IdentityResult(Outcome.VALIDATION_ERROR, MSG_INVALID_EMAIL)

        try:
            with self.store.begin_transaction() as txn:
                user = self.store.find_by_email(txn, normalized_email)
        except StoreError:
            logger.exception("Store failure while requesting reset for %s", normalized_email)
            return IdentityResult(Outcome.INTERNAL_ERROR, MSG_RESET_REQUEST_FAILED)

        if user is None:
            return IdentityResult(Outcome.NOT_FOUND, MSG_NO_USER_FOR_EMAIL)

        token = self.tokens.issue({"email": user.email}, self.reset_ttl, TokenPurpose.RESET)
        try:
            self.notifier.send(NotificationKind.RESET, user.email, token)
        except NotificationFailed:
            logger.warning("Reset delivery failed for %s", user.email)
            return IdentityResult(Outcome.INTERNAL_ERROR, MSG_RESET_REQUEST_FAILED)

        return IdentityResult(Outcome.SENT, MSG_RESET_SENT)

    def complete_password_reset(self, token: str | None, new_secret: str | None) -> IdentityResult:
        """
        Replace the password digest of the user named by a reset token.

        Returns:
            UPDATED, VALIDATION_ERROR, INVALID_TOKEN, NOT_FOUND or INTERNAL_ERROR
        """
        if not new_secret:
            return IdentityResult(Outcome.VALIDATION_ERROR, MSG_MISSING_NEW_PASSWORD)

        email = self._email_claim(token, TokenPurpose.RESET)
        if email is None:
            return IdentityResult(Outcome.INVALID_TOKEN, MSG_INVALID_TOKEN)

        try:
            with self.store.begin_transaction() as txn:
                user = self.store.find_by_email(txn, email, lock_for_update=True)
                if user is None:
                    txn.rollback()
                    return IdentityResult(Outcome.NOT_FOUND, MSG_USER_NOT_FOUND)
                digest = self.hasher.hash(new_secret)
                self.store.update(txn, user, password_digest=digest)
                txn.commit()
        except StoreError:
            logger.exception("Store failure while resetting password for %s", email)
            return IdentityResult(Outcome.INTERNAL_ERROR, MSG_RESET_FAILED)

        logger.info("Password reset for %s", email)
        return IdentityResult(Outcome.UPDATED, MSG_PASSWORD_UPDATED)

    def _email_claim(self, token: str | None, purpose: TokenPurpose) -> str | None:
        """Return the email claim of a valid token, or None."""
        if not token:
            return None
        try:
            claim = self.tokens.verify(token, purpose)
        except InvalidToken:
            return None
        email = claim.get("email")
        return email if isinstance(email, str) and email else None

    def _clean(self, value: str | None) -> str | None:
        return value.strip() if isinstance(value, str) else value

    def _validate_email(self, email: str) -> str | None:
        """
        Validate email syntax and normalize it for storage and lookup.

        Applies: strip whitespace, email-validator's normalization (Unicode
        NFC, IDNA domain), then lowercase. Deliverability (DNS) is not
        checked.
        """
        try:
            validated = validate_email(email.strip(), check_deliverability=False)
        except EmailNotValidError:
            return None
        return validated.normalized.lower()
