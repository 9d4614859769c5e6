"""
consultbook config: load from env.

load_postgres_config(), load_scheduling_config(), load_webhook_config().
"""
from consultbook.config.postgres import PostgresConfig, load_postgres_config
from consultbook.config.scheduling import SchedulingConfig, load_scheduling_config
from consultbook.config.webhook import WebhookConfig, load_webhook_config

__all__ = [
    "PostgresConfig",
    "load_postgres_config",
    "SchedulingConfig",
    "load_scheduling_config",
    "WebhookConfig",
    "load_webhook_config",
]
