"""
Best-effort user notifications scheduled after the response is sent
"""
import logging
from typing import Callable
from fastapi import BackgroundTasks
from app.config import settings
from app.models.user import User
from app.services.credit_ledger import DebitResult
from app.services.email_service import EmailSender

logger = logging.getLogger(__name__)


def _display_name(user: User) -> str:
    return user.name or "User"


class NotificationDispatcher:

    def __init__(self, email_sender: EmailSender, low_credits_threshold: int = None):
        self.email_sender = email_sender
        self.low_credits_threshold = (
            low_credits_threshold if low_credits_threshold is not None else settings.LOW_CREDITS_THRESHOLD
        )

    @staticmethod
    def _safe(name: str, send: Callable, *args) -> None:
        try:
            send(*args)
        except Exception as e:
            logger.error(f"{name} email failed: {e}", exc_info=True)

    def _schedule(self, background_tasks: BackgroundTasks, name: str, send: Callable, *args) -> None:
        background_tasks.add_task(self._safe, name, send, *args)

    def is_low(self, debit: DebitResult) -> bool:
        return debit.previous >= self.low_credits_threshold > debit.remaining > 0

    @staticmethod
    def is_depleted(debit: DebitResult) -> bool:
        return debit.cost > 0 and debit.remaining == 0

    def after_debit(
        self,
        background_tasks: BackgroundTasks,
        user: User,
        debit: DebitResult,
        first_upload: bool,
    ) -> None:
        """Schedules emails implied by a completed, charged operation."""
        if first_upload:
            self._schedule(
                background_tasks, "First upload",
                self.email_sender.send_first_upload,
                _display_name(user), user.email, debit.remaining,
            )

        if self.is_low(debit):
            self._schedule(
                background_tasks, "Credits low",
                self.email_sender.send_credits_low,
                _display_name(user), user.email, debit.remaining,
            )
        elif self.is_depleted(debit):
            self.credits_depleted(background_tasks, user)

    def credits_depleted(self, background_tasks: BackgroundTasks, user: User) -> None:
        self._schedule(
            background_tasks, "Credits depleted",
            self.email_sender.send_credits_depleted,
            _display_name(user), user.email,
            user.total_usage or 0,
        )
