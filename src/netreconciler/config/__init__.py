"""
netreconciler configuration.

Provides:
- Pydantic-based settings (environment variables, .env files)
- YAML loading of desired/observed state documents
"""

from netreconciler.config.loader import (
    ATTACHMENTS,
    RULES,
    StateDocument,
    load_document,
    parse_attachment_specs,
    parse_observed_attachments,
    parse_observed_rules,
    parse_rule_specs,
)
from netreconciler.config.settings import ReconcilerSettings, get_settings

__all__ = [
    # Settings
    "ReconcilerSettings",
    "get_settings",
    # Loader
    "ATTACHMENTS",
    "RULES",
    "StateDocument",
    "load_document",
    "parse_attachment_specs",
    "parse_observed_attachments",
    "parse_observed_rules",
    "parse_rule_specs",
]
