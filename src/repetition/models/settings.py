from pydantic import BaseModel, Field


class LanguageRequest(BaseModel):
    """入力言語の変更リクエスト（例: "Hungarian"）"""

    language: str = Field(min_length=1)


class TimeZoneRequest(BaseModel):
    """タイムゾーンの変更リクエスト（"UTC" / "UTC+X" / "UTC-X"）"""

    time_zone: str = Field(min_length=1)
