"""
Celery configuration for the messaging service.

Background work for the chat app runs here:
- Push-notification hand-off after real-time fan-out
  (chat.tasks.send_message_notifications)
- Lazy refresh of member display data (chat.tasks.refresh_member_profiles)
- Background runs of the legacy chat migration (chat.tasks.run_chat_migration)

Redis is both the message broker and result backend. Tasks are
auto-discovered from all installed Django apps; periodic schedules are
managed with django_celery_beat.

Usage:
    from chat.tasks import run_chat_migration

    run_chat_migration.delay(cleanup=False)

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
