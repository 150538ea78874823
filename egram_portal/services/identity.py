# SPDX-License-Identifier: Apache-2.0

"""
Identity provider interface and a local implementation.

``LocalIdentityProvider`` keeps bcrypt password hashes in the document store
and issues RS256-signed JWT session tokens. Signing out revokes the token's
``jti`` so later verification fails even before the token expires.
"""

import secrets
import threading
import uuid
import jwt
import bcrypt
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Callable, List, Optional, Tuple
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from opentelemetry import trace
import logging

from ..errors import AuthenticationException, ConflictException, ValidationException
from ..models.base import utcnow
from ..models.entities import Principal
from ..domain.validation import PASSWORD_MIN_LENGTH
from .document_store import DocumentStore, Predicate, SERVER_TIMESTAMP

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

CREDENTIALS_COLLECTION = "credentials"
REVOKED_TOKENS_COLLECTION = "revoked_tokens"
PASSWORD_RESETS_COLLECTION = "password_resets"

AuthStateListener = Callable[[Optional[Principal]], None]


class IdentityProvider(ABC):
    """Account, credential and session operations used by the auth service."""

    @abstractmethod
    def create_account(self, email: str, password: str) -> Principal:
        """Create an account and sign it in."""

    @abstractmethod
    def authenticate(self, email: str, password: str) -> Principal:
        """Check credentials and open a session."""

    @abstractmethod
    def sign_out(self, principal: Optional[Principal]) -> None:
        """End the principal's session."""

    @abstractmethod
    def send_password_reset(self, email: str) -> Optional[str]:
        """Start a password reset for the account."""

    @abstractmethod
    def confirm_password_reset(self, token: str, new_password: str) -> None:
        """Set a new password using a reset token."""

    @abstractmethod
    def verify_session(self, token: str) -> Principal:
        """Resolve a session token to its principal."""

    @abstractmethod
    def subscribe(self, callback: AuthStateListener) -> Callable[[], None]:
        """Register for sign-in/sign-out events; returns an unsubscribe callable."""


def generate_dev_key_pair() -> Tuple[str, str]:
    """Generate an RSA key pair (PEM private, PEM public) for development use."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048
    )

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    ).decode('utf-8')

    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode('utf-8')

    return private_pem, public_pem


class LocalIdentityProvider(IdentityProvider):
    """
    Identity provider backed by the document store.

    Credentials live in ``credentials`` (document id = user id), revoked
    session ids in ``revoked_tokens`` and pending resets in
    ``password_resets``. Reset e-mails are not delivered; the reset token is
    returned to the caller instead.
    """

    def __init__(
        self,
        store: DocumentStore,
        private_key: Optional[str] = None,
        public_key: Optional[str] = None,
        session_expire_hours: int = 12,
        reset_expire_minutes: int = 60,
        bcrypt_rounds: int = 12
    ):
        """
        Initialize the identity provider.

        Args:
            store: Document store holding credentials and session state
            private_key: RS256 private key for token signing (PEM format)
            public_key: RS256 public key for token verification (PEM format)
            session_expire_hours: Session token lifetime
            reset_expire_minutes: Password reset token lifetime
            bcrypt_rounds: bcrypt cost factor
        """
        if not private_key or not public_key:
            logger.warning("No JWT key pair configured, generating development key pair")
            private_key, public_key = generate_dev_key_pair()

        self.store = store
        self.private_key = private_key
        self.public_key = public_key
        self.algorithm = "RS256"
        self.session_expire_hours = session_expire_hours
        self.reset_expire_minutes = reset_expire_minutes
        self.bcrypt_rounds = bcrypt_rounds
        self._listeners: List[AuthStateListener] = []
        self._listeners_lock = threading.Lock()

    # Password hashing

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt with salt."""
        with tracer.start_as_current_span("identity.hash_password") as span:
            span.set_attribute("identity.operation", "hash_password")

            salt = bcrypt.gensalt(rounds=self.bcrypt_rounds)
            hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
            return hashed.decode('utf-8')

    def verify_password(self, password: str, hashed_password: str) -> bool:
        """Verify a password against its hash."""
        with tracer.start_as_current_span("identity.verify_password") as span:
            span.set_attribute("identity.operation", "verify_password")

            try:
                result = bcrypt.checkpw(password.encode('utf-8'), hashed_password.encode('utf-8'))
            except ValueError as e:
                span.set_attribute("identity.verification_result", "error")
                logger.error(f"Password verification error: {str(e)}")
                return False

            span.set_attribute("identity.verification_result", "success" if result else "failed")
            return result

    # Sessions

    def issue_session_token(self, uid: str, email: str) -> str:
        """Sign a session token for the account."""
        now = utcnow()
        payload = {
            "sub": uid,
            "email": email,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + timedelta(hours=self.session_expire_hours),
            "type": "session"
        }
        return jwt.encode(payload, self.private_key, algorithm=self.algorithm)

    def _decode(self, token: str) -> dict:
        try:
            payload = jwt.decode(
                token,
                self.public_key,
                algorithms=[self.algorithm],
                options={"verify_exp": True}
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Session verification failed: token expired")
            raise AuthenticationException("Session has expired")
        except jwt.InvalidTokenError as e:
            logger.warning(f"Session verification failed: {str(e)}")
            raise AuthenticationException("Invalid session token")

        if payload.get("type") != "session":
            raise AuthenticationException("Invalid session token")
        return payload

    def verify_session(self, token: str) -> Principal:
        """
        Resolve a session token to its principal.

        Raises:
            AuthenticationException: If the token is invalid, expired or revoked
        """
        with tracer.start_as_current_span("identity.verify_session") as span:
            payload = self._decode(token)

            if self.store.get(REVOKED_TOKENS_COLLECTION, payload["jti"]) is not None:
                span.set_attribute("identity.validation_result", "revoked")
                raise AuthenticationException("Session has been revoked")

            span.set_attributes({
                "identity.validation_result": "success",
                "user.id": payload["sub"]
            })
            return Principal(uid=payload["sub"], email=payload.get("email", ""), token=token)

    # Accounts

    def _find_credentials(self, email: str) -> Optional[dict]:
        matches = self.store.query(
            CREDENTIALS_COLLECTION, [Predicate("email", "==", email.strip().lower())], limit=1
        )
        return matches[0] if matches else None

    def create_account(self, email: str, password: str) -> Principal:
        """
        Create an account and sign it in.

        Raises:
            ConflictException: If the e-mail is already registered
        """
        with tracer.start_as_current_span("identity.create_account") as span:
            email = email.strip().lower()
            if self._find_credentials(email) is not None:
                span.set_attribute("identity.result", "duplicate")
                raise ConflictException("Email already registered")

            uid = self.store.new_id()
            self.store.set(CREDENTIALS_COLLECTION, uid, {
                "email": email,
                "passwordHash": self.hash_password(password),
                "createdAt": SERVER_TIMESTAMP
            })

            principal = Principal(uid=uid, email=email, token=self.issue_session_token(uid, email))
            span.set_attributes({"identity.result": "created", "user.id": uid})
            logger.info("Account created", extra={"user_id": uid})

        self._notify(principal)
        return principal

    def authenticate(self, email: str, password: str) -> Principal:
        """
        Check credentials and open a session.

        Raises:
            AuthenticationException: If the e-mail is unknown or the password is wrong
        """
        with tracer.start_as_current_span("identity.authenticate") as span:
            credentials = self._find_credentials(email)
            if credentials is None or not self.verify_password(password, credentials.get("passwordHash", "")):
                span.set_attribute("identity.result", "rejected")
                raise AuthenticationException("Invalid email or password")

            uid = credentials["id"]
            principal = Principal(
                uid=uid,
                email=credentials["email"],
                token=self.issue_session_token(uid, credentials["email"])
            )
            span.set_attributes({"identity.result": "authenticated", "user.id": uid})

        self._notify(principal)
        return principal

    def sign_out(self, principal: Optional[Principal]) -> None:
        """Revoke the principal's session token, if any, and notify listeners."""
        with tracer.start_as_current_span("identity.sign_out"):
            if principal is not None and principal.token:
                try:
                    payload = self._decode(principal.token)
                except AuthenticationException:
                    payload = None

                if payload is not None:
                    self.store.set(REVOKED_TOKENS_COLLECTION, payload["jti"], {
                        "userId": payload["sub"],
                        "revokedAt": SERVER_TIMESTAMP,
                        "expiresAt": payload["exp"]
                    })

        self._notify(None)

    def send_password_reset(self, email: str) -> Optional[str]:
        """
        Record a password reset request.

        Unknown e-mails are ignored so the response does not reveal which
        addresses are registered.

        Returns:
            Reset token, or None when the e-mail is unknown
        """
        with tracer.start_as_current_span("identity.send_password_reset") as span:
            credentials = self._find_credentials(email)
            if credentials is None:
                span.set_attribute("identity.result", "unknown_email")
                logger.info("Password reset requested for unknown email")
                return None

            token = secrets.token_urlsafe(32)
            self.store.set(PASSWORD_RESETS_COLLECTION, token, {
                "userId": credentials["id"],
                "email": credentials["email"],
                "requestedAt": SERVER_TIMESTAMP,
                "expiresAt": utcnow() + timedelta(minutes=self.reset_expire_minutes),
                "used": False
            })
            span.set_attribute("identity.result", "requested")
            return token

    def confirm_password_reset(self, token: str, new_password: str) -> None:
        """
        Set a new password using a reset token. The token can be used once.

        Raises:
            AuthenticationException: If the token is unknown, used or expired
            ValidationException: If the new password is too short
        """
        with tracer.start_as_current_span("identity.confirm_password_reset"):
            reset = self.store.get(PASSWORD_RESETS_COLLECTION, token)
            if reset is None or reset.get("used") or reset["expiresAt"] < utcnow():
                raise AuthenticationException("Invalid or expired reset token")

            if len(new_password) < PASSWORD_MIN_LENGTH:
                raise ValidationException(
                    f"Password must be at least {PASSWORD_MIN_LENGTH} characters long",
                    [{"field": "password", "message": "Password too short"}],
                    code="invalid_password"
                )

            batch = self.store.batch()
            batch.update(CREDENTIALS_COLLECTION, reset["userId"], {
                "passwordHash": self.hash_password(new_password),
                "updatedAt": SERVER_TIMESTAMP
            })
            batch.update(PASSWORD_RESETS_COLLECTION, token, {"used": True, "usedAt": SERVER_TIMESTAMP})
            batch.commit()

            logger.info("Password reset completed", extra={"user_id": reset["userId"]})

    # Auth state listeners

    def subscribe(self, callback: AuthStateListener) -> Callable[[], None]:
        with self._listeners_lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, principal: Optional[Principal]) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(principal)
            except Exception as e:
                logger.error(f"Auth state listener failed: {str(e)}", exc_info=True)
