from enum import Enum

from pydantic import BaseModel, Field

from ..scheduler import AnswerEase


class AnswerQuality(str, Enum):
    again = "again"
    hard = "hard"
    good = "good"
    easy = "easy"

    def to_ease(self) -> AnswerEase:
        return AnswerEase[self.name.upper()]


class SaveItemRequest(BaseModel):
    """Request model for registering a new word.

    空の単語と "/" を含む単語はここで拒否する（パスの {word} で扱えないため）。
    """

    word: str = Field(min_length=1, pattern=r"^[^/]+$")
    definition: str = Field(min_length=1)


class ItemResponse(BaseModel):
    """Scheduling state of one item / 1 件分のスケジュール状態"""

    chat_id: int
    word: str
    definition: str
    ease: int
    interval: int
    last_reviewed: int
    due_at: int


class DueItemResponse(BaseModel):
    """A due item: the word and the masked question shown to the user.

    - question: 先頭段落を除き、見出し語を伏せ字にした定義文
    """

    word: str
    question: str


class AnswerRequest(BaseModel):
    quality: AnswerQuality


class AnswerResponse(BaseModel):
    word: str
    ease: int
    interval: int
    due_at: int


class DefinitionResponse(BaseModel):
    word: str
    definition: str


class ExistsResponse(BaseModel):
    exists: bool
