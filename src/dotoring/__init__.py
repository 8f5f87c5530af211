"""dotoring — coupon expiry reminders and signed image URL caching."""

__version__ = "0.1.0"
