from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

import requests

from .base import SessionFactory, TabularResult, as_utc, send
from ..decode import decode_csv, response_text
from ..errors import AuthError, TransportError

logger = logging.getLogger(__name__)

N26_API = "https://api.tech26.de"
TOKEN_PATH = "/oauth/token"
STATEMENTS_PATH = "/api/smrt/reports/{start}/{end}/statements"

# Client credential of the official app ("android:secret"), not the user's.
BASIC_AUTH = "YW5kcm9pZDpzZWNyZXQ="


def epoch_millis(moment: datetime) -> int:
    return int(as_utc(moment).timestamp() * 1000)


class N26Adapter:
    """
    Statement source for N26 using the OAuth2 password grant.

    The access token is requested on first use and kept for the lifetime of
    the adapter. It is never refreshed.
    """

    def __init__(self,
                 username: str,
                 password: str,
                 api_url: str = N26_API,
                 session_factory: SessionFactory = requests.Session) -> None:
        self._username = username
        self._password = password
        self._api_url = api_url
        self._session_factory = session_factory
        self._token: Optional[str] = None

    def statements(self, start: datetime, end: datetime) -> TabularResult:
        with self._session_factory() as session:
            token = self._login(session)

            url = self._api_url + STATEMENTS_PATH.format(start=epoch_millis(start), end=epoch_millis(end))
            logger.debug("Requesting statements report %s", url)
            resp = send(session, "GET", url, headers={"Authorization": "bearer " + token})

            if resp.status_code in (401, 403):
                raise AuthError(f"statements request unauthorized (HTTP {resp.status_code})")
            if resp.status_code >= 400:
                raise TransportError(f"statements request failed with HTTP status {resp.status_code}")

            rows = decode_csv(response_text(resp))

        logger.info("N26 returned %d rows", len(rows))
        return rows

    def _login(self, session: requests.Session) -> str:
        if self._token:
            return self._token

        logger.debug("Requesting access token")
        resp = send(
            session,
            "POST",
            self._api_url + TOKEN_PATH,
            data={
                "grant_type": "password",
                "username": self._username,
                "password": self._password,
            },
            headers={"Authorization": "Basic " + BASIC_AUTH},
        )
        if resp.status_code >= 400:
            raise AuthError(f"token request failed with HTTP status {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError as exc:
            raise AuthError(f"token response is not valid JSON: {exc}") from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise AuthError("token response has no access_token")

        self._token = token
        return token
