"""Transaction validation package."""

from src.validation.validator import TransactionValidator, get_user_friendly_summary

__all__ = ["TransactionValidator", "get_user_friendly_summary"]
