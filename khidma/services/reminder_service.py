# -*- coding: utf-8 -*-
"""
Expiring-subscription reminders.

Providers whose trial or paid period ends within the reminder window get one
in-app notification per UTC day, plus an email when SendGrid is configured.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from khidma.domain import ProviderType, SubscriptionStatus
from khidma.models import Notification
from khidma.services.structured_logging import get_flow_logger
from khidma.utils.clock import days_left, isoformat, start_of_day, utcnow

REMINDER_TYPE = 'subscription_reminder_auto'
ACTIVE_STATUSES = (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.TRIAL.value)

log = get_flow_logger('subscription-reminder-cron')


def reminder_title(days: int) -> str:
    unit = "يوم" if days == 1 else "أيام"
    return f"⏰ تذكير: اشتراكك ينتهي خلال {days} {unit}"


def reminder_message(full_name: Optional[str]) -> str:
    return (f"مرحباً {full_name or ''}، اشتراكك سينتهي قريباً. "
            "جدد اشتراكك للاستمرار في استقبال الطلبات.")


class ReminderService:

    def __init__(self, session, email_service=None, window_days: int = 3):
        self.session = session
        self.email_service = email_service
        self.window_days = window_days

    def _expiring(self, provider_type: ProviderType, now: datetime, until: datetime):
        model = provider_type.model
        return (
            self.session.query(model)
            .filter(model.subscription_status.in_(ACTIVE_STATUSES))
            .filter(model.subscription_ends_at > now)
            .filter(model.subscription_ends_at <= until)
            .all()
        )

    def _notified_today(self, user_ids: List[str], now: datetime) -> set:
        rows = (
            self.session.query(Notification.user_id)
            .filter(Notification.user_id.in_(user_ids))
            .filter(Notification.type == REMINDER_TYPE)
            .filter(Notification.created_at >= start_of_day(now))
            .all()
        )
        return {row.user_id for row in rows}

    def run(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        until = now + timedelta(days=self.window_days)
        log.step("Cron job started - checking expiring subscriptions")

        expiring = {
            provider_type: self._expiring(provider_type, now, until)
            for provider_type in ProviderType
        }
        cooks = len(expiring[ProviderType.HOME_COOK])
        workers = len(expiring[ProviderType.HOUSE_WORKER])
        log.step("Found expiring subscriptions", cooks=cooks, workers=workers)

        user_ids = [p.user_id for providers in expiring.values() for p in providers]
        if not user_ids:
            return {'success': True, 'message': "No expiring subscriptions", 'sent': 0}

        already_notified = self._notified_today(user_ids, now)

        notifications = []
        for provider_type, providers in expiring.items():
            for provider in providers:
                if provider.user_id in already_notified:
                    continue
                days = days_left(provider.subscription_ends_at, now)
                notification = Notification(
                    user_id=provider.user_id,
                    title=reminder_title(days),
                    message=reminder_message(provider.user.full_name if provider.user else None),
                    type=REMINDER_TYPE,
                    priority='high',
                    link=f"/{provider_type.dashboard_path}",
                    meta={
                        'days_left': days,
                        'subscription_ends_at': isoformat(provider.subscription_ends_at),
                    },
                    created_at=now,
                )
                notifications.append((notification, provider))

        if not notifications:
            log.step("All expiring users already notified today")
            return {'success': True, 'message': "All users already notified today", 'sent': 0}

        self.session.add_all([n for n, _ in notifications])
        self.session.commit()
        log.step("Notifications sent successfully", count=len(notifications))

        if self.email_service is not None and self.email_service.enabled:
            for notification, provider in notifications:
                email = provider.user.email if provider.user else None
                if not email:
                    continue
                sent = self.email_service.send_subscription_reminder(
                    email, notification.title, notification.meta['days_left'], notification.link)
                if not sent:
                    log.step("Email send error", user_id=provider.user_id)

        return {
            'success': True,
            'message': f"Sent {len(notifications)} reminder notifications",
            'sent': len(notifications),
            'details': {
                'cooks': cooks,
                'workers': workers,
                'skipped': len(already_notified),
            },
        }
