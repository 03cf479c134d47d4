"""
Client-credentials login for the configuration service.

[TokenAcquirer][cfgsync.sync.token.TokenAcquirer] exchanges a client
id/secret for a bearer token. It never raises: every failure is logged and
reported as ``None``, which the caller treats as "no settings this load".

See Also:
    [AccessToken][cfgsync.models.token.AccessToken]: Parsing and the
        validity rules applied to the response.
    [SettingsFetcher][cfgsync.sync.settings.SettingsFetcher]: The consumer
        of the acquired token.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import aiohttp

from cfgsync.core.logger import Logger
from cfgsync.core.retry import RetryingInvoker
from cfgsync.models import LOGIN_PATH, AccessToken
from cfgsync.utils.http import borrow_session, post_json


if TYPE_CHECKING:
    from cfgsync.models import Credentials


DEFAULT_MAX_RESPONSE_SIZE = 64 * 1024


class TokenAcquirer:
    """Obtains a fresh access token for every call.

    Tokens are deliberately not cached: each call performs one login,
    retried on transient failures through the shared invoker.

    Args:
        invoker: Retry policy for the login round trip.
        logger: Diagnostic sink.
        session: Session for HTTP calls; a short-lived one is created per
            call when omitted.
        max_response_size: Upper bound on the login response body.
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
        self._logger = logger or Logger("cfgsync.token")
        self._session = session
        self._max_response_size = max_response_size

    async def acquire(
        self,
        credentials: Credentials,
        base_url: str,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> AccessToken | None:
        """Log in and return a valid token, or ``None``.

        Args:
            credentials: Client id and secret.
            base_url: Service base URL ending with ``/``.
            timeout: Per-attempt request timeout in seconds.

        Returns:
            A token that passed
            [is_valid][cfgsync.models.token.AccessToken.is_valid], or
            ``None`` when login failed or the token was unusable.
        """
        url = f"{base_url}{LOGIN_PATH}"

        async def login() -> Any:
            async with borrow_session(self._session) as session:
                reply = await post_json(
                    session,
                    url,
                    credentials.to_login_body(),
                    max_size=self._max_response_size,
                    timeout=timeout,
                )
            return reply.json()

        try:
            data = await self._invoker.execute(login, name="login")
        except aiohttp.ClientResponseError as e:
            self._logger.warning(
                "login_failed", client_id=credentials.client_id, status=e.status, error=e.message
            )
            return None
        except Exception as e:  # Intentionally broad: acquire() reports failures as None
            self._logger.warning(
                "login_failed",
                client_id=credentials.client_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        try:
            token = AccessToken.from_response(data)
        except (TypeError, ValueError) as e:
            self._logger.warning(
                "login_failed", client_id=credentials.client_id, error=f"malformed response: {e}"
            )
            return None

        if not token.is_valid:
            self._logger.warning(
                "token_invalid",
                client_id=credentials.client_id,
                token_type=token.token_type,
                expires_in=token.expires_in,
                scope=" ".join(sorted(token.scope)),
            )
            return None

        self._logger.debug("token_acquired", client_id=credentials.client_id, expires_in=token.expires_in)
        return token
