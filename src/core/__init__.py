"""Core domain package for divinebot.

Core contains the hook registry, filters, probability resolution, caching and
formatting without any Telegram-specific code, keeping the business logic
portable.
"""
