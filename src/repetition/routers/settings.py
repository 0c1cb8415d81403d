from functools import partial

import anyio
from fastapi import APIRouter, HTTPException

from ..chat_settings import ChatSettings
from ..errors import UnsupportedSettingError
from ..models.settings import LanguageRequest, TimeZoneRequest
from ..providers import get_settings_store

router = APIRouter(tags=["settings"])


@router.get("/{chat_id}/settings", response_model=ChatSettings, summary="チャット設定を取得")
async def get_chat_settings(chat_id: int) -> ChatSettings:
    """Return stored settings, or the defaults for an unknown chat."""
    store = get_settings_store()
    return await anyio.to_thread.run_sync(partial(store.get, chat_id))


@router.put("/{chat_id}/settings/language", response_model=ChatSettings, summary="入力言語を変更")
async def set_language(chat_id: int, req: LanguageRequest) -> ChatSettings:
    store = get_settings_store()
    try:
        return await anyio.to_thread.run_sync(partial(store.set_language, chat_id, req.language))
    except UnsupportedSettingError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.put("/{chat_id}/settings/time_zone", response_model=ChatSettings, summary="タイムゾーンを変更")
async def set_time_zone(chat_id: int, req: TimeZoneRequest) -> ChatSettings:
    store = get_settings_store()
    try:
        return await anyio.to_thread.run_sync(partial(store.set_time_zone, chat_id, req.time_zone))
    except UnsupportedSettingError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
