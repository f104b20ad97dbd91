"""Phone verification session models."""

import time

from pydantic import BaseModel, ConfigDict, Field


class SessionHandle(BaseModel):
    """Opaque reference to one verification attempt, returned to the caller."""

    model_config = ConfigDict(frozen=True)

    session_id: str = Field(description="Session identifier")
    phone_number: str = Field(description="E.164 number the code was sent to")
    issued_at: int = Field(description="Issue timestamp")
    expires_at: int = Field(description="Expiration timestamp")


class VerificationSession(BaseModel):
    """Process-local state behind a SessionHandle. Never persisted."""

    id: str = Field(description="Session identifier")
    phone_number: str = Field(description="Target E.164 number")
    challenge: str = Field(description="Provider challenge handle")
    attempts: int = Field(default=0, description="Code submissions so far")
    max_attempts: int = Field(description="Code submissions allowed")
    created_at: int = Field(description="Creation timestamp")
    expires_at: int = Field(description="Expiration timestamp")

    @classmethod
    def create(
        cls,
        session_id: str,
        phone_number: str,
        challenge: str,
        max_attempts: int,
        ttl_seconds: int = 300,
    ) -> "VerificationSession":
        """Create a new verification session with timestamps."""
        now = int(time.time())
        return cls(
            id=session_id,
            phone_number=phone_number,
            challenge=challenge,
            max_attempts=max_attempts,
            created_at=now,
            expires_at=now + ttl_seconds,
        )

    def is_expired(self) -> bool:
        """Check if session is expired."""
        return time.time() > self.expires_at

    def is_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    @property
    def attempts_remaining(self) -> int:
        return max(0, self.max_attempts - self.attempts)

    def record_attempt(self) -> None:
        self.attempts += 1

    def to_handle(self) -> SessionHandle:
        return SessionHandle(
            session_id=self.id,
            phone_number=self.phone_number,
            issued_at=self.created_at,
            expires_at=self.expires_at,
        )


class VerifiedPrincipal(BaseModel):
    """A principal the verification provider has authenticated."""

    subject_id: str = Field(description="Provider-assigned subject id")
    phone_number: str = Field(description="Verified E.164 number")
    id_token: str | None = Field(default=None, description="Provider ID token")
    refresh_token: str | None = Field(default=None, description="Provider refresh token")
    is_new_user: bool = Field(default=False, description="Provider created the principal just now")
