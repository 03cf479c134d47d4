"""
Authenticated settings query.

[SettingsFetcher][cfgsync.sync.settings.SettingsFetcher] posts the client's
scope to the settings endpoint and decodes the returned ``{key, value}``
list. Shape problems in the response are logged and reported as "no data";
network failures and client errors propagate to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiohttp

from cfgsync.core.logger import Logger
from cfgsync.core.retry import RetryingInvoker
from cfgsync.models import SETTINGS_PATH, Setting
from cfgsync.utils.http import JSON_CONTENT_TYPE, HttpReply, borrow_session, post_json


if TYPE_CHECKING:
    from cfgsync.models import AccessToken, Scope


DEFAULT_MAX_RESPONSE_SIZE = 5 * 1024 * 1024


class SettingsFetcher:
    """Fetches the settings of one scope.

    Args:
        invoker: Retry policy for the settings round trip.
        logger: Diagnostic sink.
        session: Session for HTTP calls; a short-lived one is created per
            call when omitted.
        max_response_size: Upper bound on the response body. Larger bodies
            are treated as undecodable.
    """

    def __init__(
        self,
        *,
        invoker: RetryingInvoker | None = None,
        logger: Logger | None = None,
        session: aiohttp.ClientSession | None = None,
        max_response_size: int = DEFAULT_MAX_RESPONSE_SIZE,
    ) -> None:
        self._invoker = invoker or RetryingInvoker()
        self._logger = logger or Logger("cfgsync.settings")
        self._session = session
        self._max_response_size = max_response_size

    async def fetch(
        self,
        token: AccessToken | None,
        scope: Scope,
        base_url: str,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> list[Setting]:
        """Return the settings of *scope*.

        Args:
            token: Bearer token from the login call. Without one nothing is
                requested.
            scope: Application and environment to query.
            base_url: Service base URL ending with ``/``.
            timeout: Per-attempt request timeout in seconds.

        Returns:
            The decoded settings; an empty list when *token* is ``None`` or
            the response could not be decoded.

        Raises:
            aiohttp.ClientResponseError: On a non-2xx response (after
                retries for 408 and 5xx).
            aiohttp.ClientError: On connection failures after retries.
            TimeoutError: On timeouts after retries.
        """
        if token is None:
            self._logger.warning("settings_skipped", reason="no access token")
            return []

        url = f"{base_url}{SETTINGS_PATH}"

        async def query() -> HttpReply:
            async with borrow_session(self._session) as session:
                return await post_json(
                    session,
                    url,
                    scope.to_request_body(),
                    max_size=self._max_response_size,
                    headers=token.authorization_header(),
                    timeout=timeout,
                )

        try:
            reply = await self._invoker.execute(query, name="settings")
        except aiohttp.InvalidURL:
            raise
        except ValueError as e:
            # Raised while reading the body, so the request itself succeeded
            self._logger.warning("settings_decode_failed", error=str(e))
            return []

        if not reply.is_json:
            self._logger.warning(
                "unexpected_content_type",
                expected=JSON_CONTENT_TYPE,
                content_type=reply.content_type,
            )

        return self._decode(reply)

    def _decode(self, reply: HttpReply) -> list[Setting]:
        try:
            document = reply.json()
        except ValueError as e:
            self._logger.warning("settings_decode_failed", error=str(e))
            return []

        if not isinstance(document, list):
            self._logger.warning(
                "settings_decode_failed",
                error=f"expected a list, got {type(document).__name__}",
            )
            return []

        try:
            settings = [Setting.from_json(item) for item in document]
        except (TypeError, ValueError) as e:
            self._logger.warning("settings_decode_failed", error=str(e))
            return []

        self._logger.info("settings_fetched", count=len(settings))
        return settings
