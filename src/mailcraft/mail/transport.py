"""Transport abstraction used by :meth:`MailBuilder.send`."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mailcraft.mail.message import BuiltMessage

__all__ = ["MailTransport"]


class MailTransport(ABC):
    """Deliver built messages.

    Implementations raise :class:`~mailcraft.mail.exceptions.MailTransportError`
    when delivery fails.
    """

    @abstractmethod
    def send(self, message: BuiltMessage) -> None:
        """Deliver ``message`` to every recipient it names."""
