"""API routes package"""

from . import health, plans, subscriptions, kitchen, courier, webhooks, settings

__all__ = ["health", "plans", "subscriptions", "kitchen", "courier", "webhooks", "settings"]
