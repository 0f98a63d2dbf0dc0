"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from supabase import create_client

from studio_sessions.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from studio_sessions.adapters.webhook_notification_dispatcher import (
    HttpxNotificationDispatcher,
)
from studio_sessions.config import Settings
from studio_sessions.services.deadlines import DeadlineCalculator
from studio_sessions.services.guards import GuardEvaluator, build_guard_registry
from studio_sessions.services.ledger import PaymentLedger, TieredRefundPolicy
from studio_sessions.services.notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
)
from studio_sessions.services.permissions import (
    ActorPermissionChecker,
    PermissionChecker,
)
from studio_sessions.services.sessions import SessionService
from studio_sessions.services.state_machine import (
    SessionRepository,
    StateMachine,
    utcnow,
)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_service: SessionService
    notification_dispatcher: NotificationDispatcher
    close_resources: Callable[[], Awaitable[None]]


def build_session_service(
    settings: Settings,
    repository: SessionRepository,
    permission_checker: PermissionChecker | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> SessionService:
    """Wire the lifecycle core from settings around a repository."""
    timezone = ZoneInfo(settings.studio_timezone)
    checker = permission_checker or ActorPermissionChecker()
    deadlines = DeadlineCalculator(
        payment_deadline_days=settings.payment_deadline_days,
        changes_deadline_days=settings.changes_deadline_days,
        default_editing_days=settings.default_editing_days,
        timezone=timezone,
    )
    refund_policy = TieredRefundPolicy(
        tiers=tuple(
            (tier.min_days_before_session, tier.percentage)
            for tier in settings.refund_tiers
        ),
        studio_initiated_full_refund=settings.studio_initiated_full_refund,
        timezone=timezone,
    )
    registry = build_guard_registry(
        checker,
        deadlines,
        require_full_payment_for_completion=(
            settings.require_full_payment_for_completion
        ),
    )
    state_machine = StateMachine(
        repository=repository,
        guard_evaluator=GuardEvaluator(registry),
        deadlines=deadlines,
        ledger=PaymentLedger(refund_policy=refund_policy, timezone=timezone),
        clock=clock,
    )
    return SessionService(
        repository=repository,
        state_machine=state_machine,
        permission_checker=checker,
        default_deposit_percentage=settings.default_deposit_percentage,
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_service = build_session_service(
        resolved_settings, SupabaseSessionRepository(supabase_client)
    )
    dispatcher: NotificationDispatcher
    webhook_dispatcher: HttpxNotificationDispatcher | None = None
    if resolved_settings.notification_webhook_url:
        webhook_dispatcher = HttpxNotificationDispatcher.create(
            resolved_settings.notification_webhook_url,
            max_attempts=resolved_settings.notification_max_attempts,
        )
        dispatcher = webhook_dispatcher
    else:
        dispatcher = LoggingNotificationDispatcher()

    async def close_resources() -> None:
        if webhook_dispatcher is not None:
            await webhook_dispatcher.close()

    return AppContainer(
        settings=resolved_settings,
        session_service=session_service,
        notification_dispatcher=dispatcher,
        close_resources=close_resources,
    )
