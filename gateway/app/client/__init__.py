from .paynexus import (
    PaynexusApiError,
    PaynexusClient,
    WebhookManager,
    rotate_api_key,
)

__all__ = [
    "PaynexusApiError",
    "PaynexusClient",
    "WebhookManager",
    "rotate_api_key",
]
