# khidma/jobs/reminders.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from flask import current_app

from khidma.infra.db import db
from khidma.services.email_service import EmailService
from khidma.services.reminder_service import ReminderService


def run_subscription_reminders(now: Optional[datetime] = None) -> Dict[str, Any]:
    """Send today's expiring-subscription reminders; needs an app context."""
    service = ReminderService(
        session=db.session,
        email_service=EmailService.from_config(current_app.config),
        window_days=current_app.config.get('REMINDER_WINDOW_DAYS', 3),
    )
    return service.run(now=now)
