"""Spaced-repetition review scheduler for Telegram."""
