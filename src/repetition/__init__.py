"""Spaced repetition scheduling for vocabulary chats."""
