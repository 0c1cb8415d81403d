from __future__ import annotations


class RepetitionError(Exception):
    """Base class for errors raised by the repetition core."""


class ConfigurationError(RepetitionError):
    """Invalid stage list or scheduler constants; raised before the store starts."""


class ItemNotFoundError(RepetitionError):
    """No item for ``(owner, word)``, or nothing due for ``owner``."""

    def __init__(self, owner: int, word: str | None = None) -> None:
        self.owner = owner
        self.word = word
        if word is None:
            message = f"no item due for chat {owner}"
        else:
            message = f"no item {word!r} for chat {owner}"
        super().__init__(message)


class DuplicateItemError(RepetitionError):
    def __init__(self, owner: int, word: str) -> None:
        self.owner = owner
        self.word = word
        super().__init__(f"item {word!r} already exists for chat {owner}")


class PersistenceError(RepetitionError):
    """Wraps a storage failure with the operation and key it happened on.

    元の sqlite3.Error は ``__cause__`` に残る。
    """

    def __init__(self, operation: str, owner: int | None = None, word: str | None = None, detail: str = "") -> None:
        self.operation = operation
        self.owner = owner
        self.word = word
        parts = [f"INTERNAL: {operation} failed"]
        if owner is not None:
            parts.append(f"chat={owner}")
        if word is not None:
            parts.append(f"word={word!r}")
        if detail:
            parts.append(detail)
        super().__init__(" ".join(parts))


class UnsupportedSettingError(RepetitionError, ValueError):
    """Language or time zone outside the configured catalog."""
