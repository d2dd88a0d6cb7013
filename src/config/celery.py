"""Celery configuration."""
import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault(
    "DJANGO_SETTINGS_MODULE",
    os.getenv("DJANGO_SETTINGS_MODULE", "config.settings.dev"),
)

app = Celery("bakery")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# Beat schedule
app.conf.beat_schedule = {
    "incentives-stage-current-month": {
        "task": "incentives.tasks.stage_monthly_incentives",
        "schedule": crontab(minute=0, hour=6),  # Daily at 6am
    },
    "incentives-commit-previous-month": {
        "task": "incentives.tasks.commit_previous_month_incentives",
        "schedule": crontab(minute=30, hour=2),  # Daily; task guards on day 1
    },
}
