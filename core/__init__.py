"""Core module - ERP-neutral configuration, errors and observability.

This module holds the configuration, credential sanitization, error taxonomy
and logging/metrics shared by the gateway and the API. It is intentionally
ERP-agnostic.

ERP-specific logic (Frappe/ERPNext, etc.) belongs in /connectors/.
"""

__version__ = "1.0.0"
