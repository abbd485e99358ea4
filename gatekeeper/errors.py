from __future__ import annotations

from typing import Optional


class GatekeeperError(Exception):
    """Base class for every error the bot raises on purpose."""


class InputValidationError(GatekeeperError):
    """Malformed user input. The message is safe to show to the user."""


class NotFoundError(GatekeeperError):
    pass


class EntityNotFound(NotFoundError):
    """A platform-side entity (guild, role, member) does not exist."""

    def __init__(self, entity: str, identifier: str) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found: {identifier}")


class SessionNotFound(NotFoundError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found or expired: {session_id}")


class MissingConfiguration(GatekeeperError):
    def __init__(self, setting: str) -> None:
        self.setting = setting
        super().__init__(f"{setting} not set")


class UpstreamError(GatekeeperError):
    """A call to the platform, backend, RPC node or score provider failed."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        code: Optional[int] = None,
    ) -> None:
        self.status = status
        self.code = code
        super().__init__(message)

    def describe(self) -> str:
        parts = [str(self)]
        if self.status is not None:
            parts.append(f"status={self.status}")
        if self.code is not None:
            parts.append(f"code={self.code}")
        return " ".join(parts)


class ProviderCallFailed(UpstreamError):
    """The chat platform rejected or failed a role mutation."""


class BackendError(UpstreamError):
    @property
    def not_found(self) -> bool:
        return self.status == 404

    @property
    def forbidden(self) -> bool:
        return self.status == 403


class RpcError(UpstreamError):
    pass


class PassportError(UpstreamError):
    pass
