"""Billing API routes."""

from packages.billing.routes import subscriptions, webhooks

__all__ = ["subscriptions", "webhooks"]
