"""Reconciliation of compute-instance network attachments and firewall rules."""

__version__ = "0.1.0"
