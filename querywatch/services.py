"""Wires settings, storage and sinks into a ready-to-use runner."""

from __future__ import annotations

from .checks.anomaly import StdDevDetector
from .checks.coordinator import CheckEvaluator
from .checks.runner import CheckRunner
from .checks.store import CheckStore
from .config import Settings, settings
from .notifications import EmailNotifier, EventPublisher, SlackNotifier


def build_detector(cfg: Settings = settings) -> StdDevDetector:
    return StdDevDetector(threshold=cfg.anomaly_threshold, min_points=cfg.anomaly_min_points)


def build_runner(store: CheckStore, cfg: Settings = settings) -> CheckRunner:
    """Build a runner whose evaluator talks to the configured sinks."""
    evaluator = CheckEvaluator(
        store,
        email_sink=EmailNotifier(
            cfg.smtp_host,
            cfg.email_from,
            smtp_port=cfg.smtp_port,
            smtp_user=cfg.smtp_user,
            smtp_password=cfg.smtp_password,
            use_tls=cfg.smtp_use_tls,
            base_url=cfg.base_url,
        ),
        chat_sink=SlackNotifier(cfg.slack_webhook_url, base_url=cfg.base_url),
        event_sink=EventPublisher(cfg.event_publisher_url, cfg.event_publisher_token),
        timeout_threshold=cfg.timeout_threshold,
        sample_rows=cfg.sample_row_limit,
    )
    return CheckRunner(evaluator, max_workers=cfg.runner_workers)
