"""Hosted identity-toolkit REST adapters for phone verification and accounts."""

from typing import Any

import httpx
from loguru import logger

from src.fleet_auth.core.services.providers.base import (
    AccountAdminClient,
    ChallengeConfirmation,
    ProviderCode,
    ProviderFailure,
    VerificationProvider,
)
from src.fleet_auth.runtime.context import get_config

# Provider error messages look like "INVALID_CODE" or "TOO_MANY_ATTEMPTS_TRY_LATER : ..."
_ERROR_CODES = {
    "INVALID_PHONE_NUMBER": ProviderCode.INVALID_PHONE,
    "MISSING_PHONE_NUMBER": ProviderCode.INVALID_PHONE,
    "QUOTA_EXCEEDED": ProviderCode.QUOTA_EXCEEDED,
    "TOO_MANY_ATTEMPTS_TRY_LATER": ProviderCode.QUOTA_EXCEEDED,
    "CAPTCHA_CHECK_FAILED": ProviderCode.BOT_CHECK_FAILED,
    "INVALID_APP_CREDENTIAL": ProviderCode.BOT_CHECK_FAILED,
    "MISSING_RECAPTCHA_TOKEN": ProviderCode.BOT_CHECK_FAILED,
    "INVALID_CODE": ProviderCode.INVALID_CODE,
    "MISSING_CODE": ProviderCode.INVALID_CODE,
    "INVALID_SESSION_INFO": ProviderCode.INVALID_SESSION,
    "MISSING_SESSION_INFO": ProviderCode.INVALID_SESSION,
    "SESSION_EXPIRED": ProviderCode.CODE_EXPIRED,
    "CODE_EXPIRED": ProviderCode.CODE_EXPIRED,
    "EMAIL_EXISTS": ProviderCode.EMAIL_EXISTS,
}


def parse_error(response: httpx.Response) -> ProviderFailure:
    """Translate an error response body into a ProviderFailure."""
    if response.status_code == 429:
        return ProviderFailure(ProviderCode.QUOTA_EXCEEDED, "HTTP 429")
    if response.status_code >= 500:
        return ProviderFailure(ProviderCode.NETWORK, f"HTTP {response.status_code}")

    try:
        message = response.json().get("error", {}).get("message", "")
    except ValueError:
        message = ""

    key = message.split(":", 1)[0].strip()
    return ProviderFailure(_ERROR_CODES.get(key, ProviderCode.UNKNOWN), message)


class IdentityToolkitClient:
    """Thin JSON-over-HTTPS client for the identity-toolkit endpoints."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout

    async def post(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST ``payload`` to ``accounts:<method>`` and return the JSON body.

        Raises:
            ProviderFailure: on any transport or provider error
        """
        url = f"{self._base_url}/accounts:{method}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    url, params={"key": self._api_key}, json=payload
                )
        except httpx.HTTPError as e:
            logger.warning(f"Identity toolkit {method} unreachable: {e}")
            raise ProviderFailure(ProviderCode.NETWORK, str(e)) from e

        if response.status_code >= 400:
            failure = parse_error(response)
            logger.debug(f"Identity toolkit {method} failed: {failure}")
            raise failure

        return response.json()


class HttpVerificationProvider(VerificationProvider):
    """Phone verification against the hosted identity toolkit."""

    def __init__(self, client: IdentityToolkitClient | None = None) -> None:
        if client is None:
            cfg = get_config().verification
            client = IdentityToolkitClient(cfg.base_url, cfg.api_key, cfg.timeout_seconds)
        self._client = client

    async def issue_challenge(self, phone_number: str, bot_check_token: str) -> str:
        body = await self._client.post(
            "sendVerificationCode",
            {"phoneNumber": phone_number, "recaptchaToken": bot_check_token},
        )
        session_info = body.get("sessionInfo")
        if not session_info:
            raise ProviderFailure(ProviderCode.UNKNOWN, "Response without sessionInfo")
        return session_info

    async def confirm_challenge(self, challenge: str, code: str) -> ChallengeConfirmation:
        body = await self._client.post(
            "signInWithPhoneNumber", {"sessionInfo": challenge, "code": code}
        )
        if not body.get("localId"):
            raise ProviderFailure(ProviderCode.UNKNOWN, "Response without localId")
        return ChallengeConfirmation(
            subject_id=body["localId"],
            id_token=body.get("idToken"),
            refresh_token=body.get("refreshToken"),
            is_new_user=bool(body.get("isNewUser", False)),
        )


class HttpAccountAdminClient(AccountAdminClient):
    """E-mail/password principal management against the hosted identity toolkit."""

    def __init__(self, client: IdentityToolkitClient | None = None) -> None:
        if client is None:
            cfg = get_config().provisioning
            client = IdentityToolkitClient(cfg.base_url, cfg.api_key, cfg.timeout_seconds)
        self._client = client

    async def create_principal(self, email: str, password: str, display_name: str) -> str:
        body = await self._client.post(
            "signUp", {"email": email, "password": password, "returnSecureToken": True}
        )
        subject_id = body.get("localId")
        if not subject_id:
            raise ProviderFailure(ProviderCode.UNKNOWN, "Response without localId")

        if display_name and body.get("idToken"):
            await self._client.post(
                "update",
                {"idToken": body["idToken"], "displayName": display_name, "returnSecureToken": False},
            )
        return subject_id

    async def send_password_reset(self, email: str) -> None:
        await self._client.post(
            "sendOobCode", {"requestType": "PASSWORD_RESET", "email": email}
        )
