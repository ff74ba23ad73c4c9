"""
Delivery jobs.

Components:
- eligibility: is_due() decides whether a note's delivery is due
- DeliveryScheduler: cron-driven runs over the note store
- run_delivery: standalone process entrypoint

Usage:
    scheduler = DeliveryScheduler(stores.notes, dispatcher)
    summary = await scheduler.trigger_now()
"""

from capsule.jobs.eligibility import DELIVERY_AGE, is_due, age_in_days
from capsule.jobs.delivery_scheduler import DeliveryScheduler, RunSummary

__all__ = [
    "DELIVERY_AGE",
    "is_due",
    "age_in_days",
    "DeliveryScheduler",
    "RunSummary",
]
