"""Telegram-specific adapters around the core pipeline."""
