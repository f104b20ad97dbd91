"""Phone verification session management."""

from loguru import logger

from src.fleet_auth.core.errors import (
    ChallengeSetupFailed,
    IdentityError,
    InvalidCode,
    InvalidPhoneFormat,
    ProviderUnavailable,
    RateLimited,
    SessionExpired,
    TooManyAttempts,
)
from src.fleet_auth.core.models.verification import (
    SessionHandle,
    VerificationSession,
    VerifiedPrincipal,
)
from src.fleet_auth.core.phone import mask_phone, require_e164
from src.fleet_auth.core.security import generate_session_id, is_valid_code
from src.fleet_auth.core.services.providers.base import (
    BotCheck,
    ProviderCode,
    ProviderFailure,
    VerificationProvider,
)
from src.fleet_auth.runtime.context import get_config


def _translate_issue_failure(failure: ProviderFailure, phone_number: str) -> IdentityError:
    if failure.code is ProviderCode.INVALID_PHONE:
        return InvalidPhoneFormat(phone_number)
    if failure.code is ProviderCode.QUOTA_EXCEEDED:
        return RateLimited(failure.message)
    if failure.code is ProviderCode.BOT_CHECK_FAILED:
        return ChallengeSetupFailed(failure.message)
    return ProviderUnavailable(str(failure))


class VerificationSessionManager:
    """Owns the verification attempts of one device.

    At most one session is live at a time. Handles are returned to the
    caller and passed back to ``submit_code``/``resend``; a handle that
    has been superseded by a newer challenge fails with SessionExpired.
    """

    def __init__(self, provider: VerificationProvider, bot_check: BotCheck) -> None:
        self._provider = provider
        self._bot_check = bot_check
        self._bot_check_ready = False
        self._active: VerificationSession | None = None
        self._issue_seq = 0

    @property
    def active_handle(self) -> SessionHandle | None:
        if self._active is None:
            return None
        return self._active.to_handle()

    async def _ensure_bot_check(self) -> None:
        if self._bot_check_ready:
            return
        try:
            await self._bot_check.initialize()
        except ProviderFailure as e:
            raise ChallengeSetupFailed(str(e)) from e
        self._bot_check_ready = True

    async def begin_challenge(self, phone_number: str) -> SessionHandle:
        """Send a one-time code to ``phone_number`` and return the new handle.

        Any previously issued handle stops being usable immediately.

        Raises:
            InvalidPhoneFormat: number is not E.164 or the provider rejected it
            RateLimited: provider quota exceeded
            ChallengeSetupFailed: bot-check could not be set up or was rejected
            ProviderUnavailable: provider unreachable
        """
        phone = require_e164(phone_number)
        cfg = get_config().verification

        self._issue_seq += 1
        ticket = self._issue_seq
        self._active = None

        await self._ensure_bot_check()
        try:
            token = await self._bot_check.token()
            challenge = await self._provider.issue_challenge(phone, token)
        except ProviderFailure as e:
            if e.code is ProviderCode.BOT_CHECK_FAILED:
                # Start over with a fresh bot-check on the next attempt
                self._bot_check_ready = False
            logger.warning(f"Could not send verification code to {mask_phone(phone)}: {e}")
            raise _translate_issue_failure(e, phone) from e

        session = VerificationSession.create(
            session_id=generate_session_id(),
            phone_number=phone,
            challenge=challenge,
            max_attempts=cfg.max_code_attempts,
            ttl_seconds=cfg.challenge_ttl_seconds,
        )
        if ticket == self._issue_seq:
            self._active = session
        else:
            logger.debug("Challenge superseded before it was issued")

        logger.info(f"Verification code sent to {mask_phone(phone)}")
        return session.to_handle()

    async def resend(self, handle: SessionHandle) -> SessionHandle:
        """Issue a fresh challenge for the handle's phone number."""
        return await self.begin_challenge(handle.phone_number)

    def abandon(self, handle: SessionHandle | None = None) -> None:
        """Discard the live session (or only ``handle``'s, if given)."""
        if self._active is None:
            return
        if handle is None or handle.session_id == self._active.id:
            self._active = None

    async def submit_code(self, handle: SessionHandle, code: str) -> VerifiedPrincipal:
        """Confirm ``code`` for ``handle``; the handle is consumed on success.

        Raises:
            InvalidCode: malformed or wrong code, attempts remain
            TooManyAttempts: the attempt budget for this challenge is spent
            SessionExpired: handle superseded, abandoned or timed out
            RateLimited: provider quota exceeded
            ProviderUnavailable: provider unreachable
        """
        cfg = get_config().verification
        session = self._active

        if session is None or session.id != handle.session_id:
            raise SessionExpired("Verification session is no longer active")
        if session.is_exhausted():
            raise TooManyAttempts(f"{session.max_attempts} attempts used")
        if session.is_expired():
            self._active = None
            raise SessionExpired("Verification session timed out")
        if not is_valid_code(code, cfg.code_length):
            raise InvalidCode(
                f"Code must be {cfg.code_length} digits",
                attempts_remaining=session.attempts_remaining,
            )

        session.record_attempt()
        try:
            confirmation = await self._provider.confirm_challenge(session.challenge, code)
        except ProviderFailure as e:
            if self._active is not session:
                raise SessionExpired("Verification session was replaced") from e
            if e.code is ProviderCode.INVALID_CODE:
                if session.is_exhausted():
                    logger.info(f"Attempts exhausted for {mask_phone(session.phone_number)}")
                    raise TooManyAttempts(f"{session.max_attempts} attempts used") from e
                raise InvalidCode(attempts_remaining=session.attempts_remaining) from e
            if e.code in (ProviderCode.INVALID_SESSION, ProviderCode.CODE_EXPIRED):
                self._active = None
                raise SessionExpired(str(e)) from e
            # Transient failures do not use up an attempt
            session.attempts -= 1
            if e.code is ProviderCode.QUOTA_EXCEEDED:
                raise RateLimited(e.message) from e
            raise ProviderUnavailable(str(e)) from e

        if self._active is not session:
            raise SessionExpired("Verification session was replaced")

        self._active = None
        logger.bind(subject=confirmation.subject_id).info(
            f"Phone {mask_phone(session.phone_number)} verified"
        )
        return VerifiedPrincipal(
            subject_id=confirmation.subject_id,
            phone_number=session.phone_number,
            id_token=confirmation.id_token,
            refresh_token=confirmation.refresh_token,
            is_new_user=confirmation.is_new_user,
        )
