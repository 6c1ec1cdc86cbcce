"""Metric definitions used across the ticketing service."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MetricDefinition:
    """Describe a metric that should exist in the registry."""

    name: str
    metric_type: str
    description: str
    label_names: tuple[str, ...] = ()


DEFAULT_METRIC_DEFINITIONS: tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name="tickets_minted_total",
        metric_type="counter",
        description="Tickets minted through the organizer flow.",
    ),
    MetricDefinition(
        name="tickets_checked_in_total",
        metric_type="counter",
        description="Successful check-ins.",
        label_names=("flow",),
    ),
    MetricDefinition(
        name="tickets_burned_total",
        metric_type="counter",
        description="Tickets burned by an administrator.",
    ),
    MetricDefinition(
        name="ticket_purchases_total",
        metric_type="counter",
        description="Wallet purchases, labelled by whether the NFT mint succeeded.",
        label_names=("mint",),
    ),
    MetricDefinition(
        name="ticket_purchase_rejections_total",
        metric_type="counter",
        description="Purchases refused before any seat was reserved.",
        label_names=("reason",),
    ),
    MetricDefinition(
        name="chain_call_failures_total",
        metric_type="counter",
        description="Chain gateway calls that failed or timed out.",
        label_names=("operation",),
    ),
    MetricDefinition(
        name="chain_call_duration_seconds",
        metric_type="distribution",
        description="Duration of chain gateway calls in seconds.",
        label_names=("operation",),
    ),
)
