"""
Remote Store - Supabase cloud storage over the PostgREST HTTP API.

Categories and word pairs live in the ``categories`` and ``words`` tables,
scoped to the signed-in user. Transport failures and retryable statuses
surface as NetworkError, every other refusal as RejectedError.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

import aiohttp

from ..config import SettingsManager
from ..exceptions import NetworkError, RejectedError, StoreError
from ..models import (
    Category,
    LanguagePair,
    WordPair,
    WordSide,
    build_sides,
    clean_category_name,
    normalize_category_updates,
    normalize_pairs,
)
from ..utils.parsing import TextParser
from .repository import BaseStore, PairInput

logger = logging.getLogger(__name__)

# Statuses worth retrying later: the request itself was fine
TRANSIENT_STATUSES = frozenset({408, 425, 429})


class RemoteStore(BaseStore):
    """
    Supabase-backed store.

    Features:
    - Lazy aiohttp session with a total request timeout
    - Password sign-in or a pre-issued access token
    - Status-code mapping to NetworkError / RejectedError
    """

    REST_PATH = "/rest/v1"
    AUTH_PATH = "/auth/v1"

    def __init__(
        self,
        url: Optional[str] = None,
        anon_key: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the remote store.

        Args:
            url: Supabase project URL (defaults to the SUPABASE_URL setting)
            anon_key: Public anon API key
            access_token: JWT of an existing session, if any
            timeout: Total per-request timeout in seconds
        """
        settings = SettingsManager()
        self.url = (url if url is not None else settings.get("SUPABASE_URL", "")).rstrip("/")
        self.anon_key = anon_key if anon_key is not None else settings.get("SUPABASE_ANON_KEY", "")
        self.access_token = access_token if access_token is not None else settings.get("SUPABASE_ACCESS_TOKEN", "")
        self.timeout = timeout if timeout is not None else settings.get("TIMEOUT", 30)

        self.current_user: Optional[Dict[str, Any]] = None
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.anon_key)

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    @staticmethod
    def _error_message(text: str) -> str:
        try:
            body = json.loads(text)
        except ValueError:
            return text.strip()
        if isinstance(body, dict):
            return body.get("message") or body.get("error_description") or body.get("msg") or text.strip()
        return text.strip()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        payload: Any = None,
    ) -> Any:
        """
        Make an HTTP request against the project.

        Args:
            method: HTTP method
            path: Path below the project URL (e.g. "/rest/v1/words")
            params: Query parameters
            payload: JSON body

        Returns:
            Decoded JSON body, or None for an empty body

        Raises:
            NetworkError: Connection failure, timeout, 408/425/429 or 5xx
            RejectedError: Any other 4xx
        """
        if not self.url:
            raise RejectedError("Remote store is not configured")

        session = await self._get_session()
        try:
            async with session.request(
                method, f"{self.url}{path}", params=params, json=payload, headers=self._headers()
            ) as response:
                text = await response.text()
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"{method} {path} failed: {str(e) or type(e).__name__}") from e

        if status >= 500 or status in TRANSIENT_STATUSES:
            raise NetworkError(f"{method} {path}: HTTP {status} {self._error_message(text)}", status=status)
        if status >= 400:
            raise RejectedError(f"{method} {path}: HTTP {status} {self._error_message(text)}", status=status)

        if not text.strip():
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise NetworkError(f"{method} {path}: malformed response body", status=status) from e

    def _require_user(self) -> str:
        if self.current_user is None:
            raise RejectedError("Not signed in", status=401)
        return self.current_user["id"]

    @staticmethod
    def _single(rows: Any, what: str) -> Dict[str, Any]:
        if not rows:
            raise RejectedError(f"{what} not found", status=404)
        return rows[0] if isinstance(rows, list) else rows

    # ==================== Auth ====================

    async def init(self) -> bool:
        """
        Restore the session for the configured access token.

        Returns:
            True if a user is signed in

        Raises:
            NetworkError: If the auth server could not be reached
        """
        if not self.is_configured:
            logger.info("Supabase is not configured, remote store disabled")
            return False
        if not self.access_token:
            logger.info("No Supabase session, sign in to enable cloud sync")
            return False

        try:
            user = await self._request("GET", f"{self.AUTH_PATH}/user")
        except RejectedError as e:
            logger.warning("Supabase session rejected: %s", e)
            self.current_user = None
            return False

        self.current_user = user if isinstance(user, dict) and user.get("id") else None
        return self.current_user is not None

    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """Sign in with email and password. Returns the user record."""
        data = await self._request(
            "POST",
            f"{self.AUTH_PATH}/token",
            params={"grant_type": "password"},
            payload={"email": email, "password": password},
        )
        self.access_token = data["access_token"]
        self.current_user = data["user"]
        logger.info("Signed in as %s", self.current_user.get("email", email))
        return self.current_user

    async def sign_out(self) -> None:
        if self.access_token:
            await self._request("POST", f"{self.AUTH_PATH}/logout")
        self.access_token = ""
        self.current_user = None

    async def health_check(self) -> bool:
        """True if the project answers; never raises."""
        if not self.is_configured:
            return False
        try:
            await self._request("GET", f"{self.AUTH_PATH}/health")
            return True
        except StoreError as e:
            logger.debug("Health check failed: %s", e)
            return False

    # ==================== Row conversion ====================

    @staticmethod
    def _row_to_category(row: Dict[str, Any]) -> Category:
        counts = row.get("words") or []
        word_count = counts[0].get("count", 0) if counts and isinstance(counts[0], dict) else 0
        return Category(
            id=row["id"],
            name=row.get("name", ""),
            description=row.get("description") or "",
            language_pair=LanguagePair.from_value({"lang1": row.get("lang1"), "lang2": row.get("lang2")}),
            created_at=row.get("created_at") or "",
            updated_at=row.get("updated_at") or "",
            word_count=int(word_count or 0),
        )

    @staticmethod
    def _row_to_word(row: Dict[str, Any]) -> WordPair:
        return WordPair(
            id=row["id"],
            category_id=row.get("category_id"),
            lang1=WordSide(row.get("word1") or "", row.get("pronunciation1") or ""),
            lang2=WordSide(row.get("word2") or "", row.get("pronunciation2") or ""),
            created_at=row.get("created_at") or "",
        )

    # ==================== Categories ====================

    async def add_category(
        self,
        name: str,
        description: str = "",
        language_pair: Union[LanguagePair, Dict[str, Any], None] = None,
    ) -> Category:
        user_id = self._require_user()
        pair = LanguagePair.from_value(language_pair)
        rows = await self._request("POST", f"{self.REST_PATH}/categories", payload={
            "name": clean_category_name(name),
            "description": TextParser.clean_term(description),
            "lang1": pair.lang1,
            "lang2": pair.lang2,
            "user_id": user_id,
        })
        return self._row_to_category(self._single(rows, "Category"))

    async def get_all_categories(self) -> List[Category]:
        self._require_user()
        rows = await self._request("GET", f"{self.REST_PATH}/categories", params={
            "select": "*,words(count)",
            "order": "created_at.desc",
        })
        return [self._row_to_category(row) for row in rows or []]

    async def get_category(self, category_id: Any) -> Category:
        self._require_user()
        rows = await self._request("GET", f"{self.REST_PATH}/categories", params={
            "select": "*,words(count)",
            "id": f"eq.{category_id}",
        })
        return self._row_to_category(self._single(rows, f"Category {category_id}"))

    async def update_category(self, category_id: Any, updates: Dict[str, Any]) -> Category:
        self._require_user()
        normalized = normalize_category_updates(updates)
        body: Dict[str, Any] = {}
        if "name" in normalized:
            body["name"] = normalized["name"]
        if "description" in normalized:
            body["description"] = normalized["description"]
        if "languagePair" in normalized:
            body["lang1"] = normalized["languagePair"]["lang1"]
            body["lang2"] = normalized["languagePair"]["lang2"]

        rows = await self._request(
            "PATCH",
            f"{self.REST_PATH}/categories",
            params={"id": f"eq.{category_id}", "select": "*,words(count)"},
            payload=body,
        )
        return self._row_to_category(self._single(rows, f"Category {category_id}"))

    async def delete_category(self, category_id: Any) -> None:
        self._require_user()
        await self._request("DELETE", f"{self.REST_PATH}/words", params={"category_id": f"eq.{category_id}"})
        await self._request("DELETE", f"{self.REST_PATH}/categories", params={"id": f"eq.{category_id}"})

    # ==================== Word pairs ====================

    def _word_row(self, category_id: Any, user_id: str, lang1: WordSide, lang2: WordSide) -> Dict[str, Any]:
        return {
            "category_id": category_id,
            "user_id": user_id,
            "word1": lang1.word,
            "pronunciation1": lang1.pronunciation,
            "word2": lang2.word,
            "pronunciation2": lang2.pronunciation,
        }

    async def add_word(
        self,
        category_id: Any,
        word1: str,
        pronunciation1: str,
        word2: str,
        pronunciation2: str,
    ) -> WordPair:
        user_id = self._require_user()
        lang1, lang2 = build_sides(word1, pronunciation1, word2, pronunciation2)
        rows = await self._request(
            "POST", f"{self.REST_PATH}/words", payload=self._word_row(category_id, user_id, lang1, lang2)
        )
        return self._row_to_word(self._single(rows, "Word pair"))

    async def get_word(self, word_id: Any) -> WordPair:
        self._require_user()
        rows = await self._request("GET", f"{self.REST_PATH}/words", params={
            "select": "*",
            "id": f"eq.{word_id}",
        })
        return self._row_to_word(self._single(rows, f"Word pair {word_id}"))

    async def get_words_by_category(self, category_id: Any) -> List[WordPair]:
        self._require_user()
        rows = await self._request("GET", f"{self.REST_PATH}/words", params={
            "select": "*",
            "category_id": f"eq.{category_id}",
            "order": "created_at.asc",
        })
        return [self._row_to_word(row) for row in rows or []]

    async def import_words(self, category_id: Any, pairs: Iterable[PairInput]) -> List[WordPair]:
        user_id = self._require_user()
        normalized = normalize_pairs(pairs)
        if not normalized:
            return []
        rows = await self._request(
            "POST",
            f"{self.REST_PATH}/words",
            payload=[self._word_row(category_id, user_id, a, b) for a, b in normalized],
        )
        return [self._row_to_word(row) for row in rows or []]

    async def delete_word(self, word_id: Any) -> None:
        self._require_user()
        await self._request("DELETE", f"{self.REST_PATH}/words", params={"id": f"eq.{word_id}"})

    async def delete_words_by_category(self, category_id: Any) -> None:
        self._require_user()
        await self._request("DELETE", f"{self.REST_PATH}/words", params={"category_id": f"eq.{category_id}"})

    async def clear_all_data(self) -> None:
        user_id = self._require_user()
        await self._request("DELETE", f"{self.REST_PATH}/words", params={"user_id": f"eq.{user_id}"})
        await self._request("DELETE", f"{self.REST_PATH}/categories", params={"user_id": f"eq.{user_id}"})
