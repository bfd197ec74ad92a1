"""OAuth credential lifecycle: storage, expiry checks, refresh and code exchange"""
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Type

import requests
from sqlalchemy.exc import SQLAlchemyError

from soundwrapped_report.db import Database
from soundwrapped_report.exceptions import (
    AuthenticationRequired,
    TokenExchangeFailed,
    TokenRefreshFailed,
    TokenUnavailable,
)
from soundwrapped_report.models.credential import Credential
from soundwrapped_report.models.db import StoredCredential, utcnow

logger = logging.getLogger(__name__)


class CredentialStore(ABC):
    """Durable home of the single credential of this deployment"""

    @abstractmethod
    def load(self) -> Optional[Credential]:
        """Return the stored credential, or None if nothing is stored"""

    @abstractmethod
    def save(self, credential: Credential) -> None:
        """Replace whatever is stored with ``credential``"""


class SqlCredentialStore(CredentialStore):
    """Credential store backed by the ``tokens`` table"""

    def __init__(self, database: Database):
        self.database = database

    def load(self) -> Optional[Credential]:
        with self.database.session() as session:
            row = session.query(StoredCredential).order_by(StoredCredential.id.desc()).first()
            if row is None:
                return None
            expires_at = row.expires_at
            if expires_at is not None and expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            return Credential(
                access_token=row.access_token,
                refresh_token=row.refresh_token,
                expires_at=expires_at
            )

    def save(self, credential: Credential) -> None:
        expires_at = credential.expires_at
        if expires_at is not None:
            expires_at = expires_at.astimezone(timezone.utc).replace(tzinfo=None)
        try:
            with self.database.session() as session:
                # Delete and insert in one transaction: readers never see zero or two rows
                session.query(StoredCredential).delete()
                session.add(StoredCredential(
                    access_token=credential.access_token,
                    refresh_token=credential.refresh_token,
                    expires_at=expires_at,
                    updated_at=utcnow()
                ))
        except SQLAlchemyError as e:
            logger.error(f"Database error storing credential: {e}")
            raise


class TokenLifecycleManager:
    """
    Owns the current credential and its expiry.

    Every mutation (save, refresh, code exchange) runs under one lock, so the
    background refresh timer and a 401-triggered refresh on a request thread
    cannot interleave and lose an update.
    """

    def __init__(self, store: CredentialStore, client_id: str, client_secret: str,
                 token_url: str, redirect_uri: Optional[str] = None,
                 http: Optional[requests.Session] = None,
                 refresh_margin_seconds: int = 300,
                 timeout: float = 15,
                 user_agent: str = "SoundWrapped/1.0",
                 clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.redirect_uri = redirect_uri
        self.http = http or requests.Session()
        self.refresh_margin = timedelta(seconds=refresh_margin_seconds)
        self.timeout = timeout
        self.user_agent = user_agent
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()

    def get_credential(self) -> Optional[Credential]:
        return self.store.load()

    def get_access_token(self) -> Optional[str]:
        credential = self.store.load()
        return credential.access_token if credential else None

    def get_refresh_token(self) -> Optional[str]:
        credential = self.store.load()
        return credential.refresh_token if credential else None

    def require_access_token(self) -> str:
        """Current access token; raises TokenUnavailable when nothing is stored"""
        token = self.get_access_token()
        if not token:
            raise TokenUnavailable("No access token available. User must authenticate first.")
        return token

    def needs_refresh(self) -> bool:
        """True if the stored expiry is unknown or within the safety margin of now"""
        credential = self.store.load()
        if credential is None:
            return True
        return credential.expires_within(self.refresh_margin, self.clock())

    def save_credential(self, access_token: str, refresh_token: Optional[str],
                        expires_in_seconds: Optional[int] = None) -> Credential:
        """Atomically replace the stored credential, turning ``expires_in`` into an absolute expiry"""
        if not access_token:
            raise ValueError("Access token cannot be empty")
        with self._lock:
            credential = Credential.issue(access_token, refresh_token, expires_in_seconds, self.clock())
            self.store.save(credential)
            logger.info(f"Stored new credential (expires at: {credential.expires_at or 'unknown'})")
            return credential

    def refresh(self, stale_access_token: Optional[str] = None) -> str:
        """
        Exchange the stored refresh token for a new credential and persist it.

        Args:
            stale_access_token: the token the caller saw rejected. If another actor has
                already replaced it by the time the lock is held, that newer token is
                returned and no second exchange is made.

        Returns:
            The access token now stored

        Raises:
            TokenRefreshFailed: no refresh token is stored, or the exchange failed
        """
        with self._lock:
            credential = self.store.load()
            if (stale_access_token is not None and credential is not None
                    and credential.access_token != stale_access_token):
                logger.info("Credential was already refreshed by another caller; reusing it")
                return credential.access_token

            refresh_token = credential.refresh_token if credential else None
            if not refresh_token:
                raise TokenRefreshFailed("Missing refresh token; cannot refresh access token.")

            logger.info("Refreshing access token...")
            body = self._post_token({
                'grant_type': 'refresh_token',
                'refresh_token': refresh_token,
                'client_id': self.client_id,
                'client_secret': self.client_secret,
            }, TokenRefreshFailed)

            # Keep the old refresh token unless a rotated one was issued
            new_refresh_token = body.get('refresh_token') or refresh_token
            saved = self.save_credential(body['access_token'], new_refresh_token, _expires_in(body))
            logger.info("Access token refreshed successfully")
            return saved.access_token

    def exchange_authorization_code(self, code: str) -> Credential:
        """Exchange an OAuth authorization code for the deployment's credential"""
        if not code or not code.strip():
            raise TokenExchangeFailed("Authorization code must not be empty.")
        with self._lock:
            logger.info("Exchanging authorization code for a credential...")
            data = {
                'grant_type': 'authorization_code',
                'client_id': self.client_id,
                'client_secret': self.client_secret,
                'code': code,
            }
            if self.redirect_uri:
                data['redirect_uri'] = self.redirect_uri
            body = self._post_token(data, TokenExchangeFailed)
            if not body.get('refresh_token'):
                raise TokenExchangeFailed("Invalid response from authorization exchange: missing refresh_token")
            return self.save_credential(body['access_token'], body['refresh_token'], _expires_in(body))

    def obtain_client_credentials(self) -> Credential:
        """
        App-only token from the ``client_credentials`` grant.

        Not stored: it carries no user identity and must not replace the user's credential.
        """
        logger.info("Requesting app-only token...")
        body = self._post_token({
            'grant_type': 'client_credentials',
            'client_id': self.client_id,
            'client_secret': self.client_secret,
        }, TokenExchangeFailed)
        return Credential.issue(body['access_token'], body.get('refresh_token'), _expires_in(body), self.clock())

    def _post_token(self, data: Dict[str, str], error_cls: Type[AuthenticationRequired]) -> Dict[str, Any]:
        """POST to the token endpoint and return the JSON body, mapping every failure to ``error_cls``"""
        try:
            response = self.http.post(
                self.token_url,
                data=data,
                headers={'Accept': 'application/json', 'User-Agent': self.user_agent},
                timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.error(f"Token endpoint rejected {data.get('grant_type')} grant (status: {status})")
            raise error_cls(f"Token endpoint returned HTTP {status}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Token endpoint request failed: {e}")
            raise error_cls(f"Token endpoint request failed: {e}") from e
        except ValueError as e:
            logger.error("Token endpoint returned a non-JSON body")
            raise error_cls("Token endpoint returned a non-JSON body") from e

        if not isinstance(body, dict) or not body.get('access_token'):
            raise error_cls("No access token in token endpoint response")
        return body


def _expires_in(body: Dict[str, Any]) -> Optional[int]:
    value = body.get('expires_in')
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None
