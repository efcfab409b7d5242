from .organization import Organization, SubscriptionStatus

__all__ = [
    "Organization",
    "SubscriptionStatus",
]
