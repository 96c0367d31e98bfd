from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from authcore.services._shared.errors import MailDeliveryError


class Mailer(Protocol):
    """Port for transactional auth emails.

    Implementations raise :class:`MailDeliveryError` when the message could
    not be handed off.
    """

    def send_verification_email(self, to: str, token: str) -> None: ...

    def send_password_reset_email(self, to: str, token: str) -> None: ...


@dataclass(frozen=True)
class SentMail:
    kind: str
    to: str
    token: str


@dataclass
class InMemoryMailer:
    """Mailer double recording an outbox; set ``fail`` to simulate an outage."""

    fail: bool = False
    outbox: list[SentMail] = field(default_factory=list)

    def _send(self, kind: str, to: str, token: str) -> None:
        if self.fail:
            raise MailDeliveryError(f"Could not deliver {kind} email to {to}")
        self.outbox.append(SentMail(kind=kind, to=to, token=token))

    def send_verification_email(self, to: str, token: str) -> None:
        self._send("verification", to, token)

    def send_password_reset_email(self, to: str, token: str) -> None:
        self._send("password_reset", to, token)

    def last_token(self, kind: str) -> str | None:
        """Return the token of the most recent message of ``kind``."""
        for mail in reversed(self.outbox):
            if mail.kind == kind:
                return mail.token
        return None
