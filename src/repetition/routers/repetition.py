from functools import partial

import anyio  # オフロード用
from fastapi import APIRouter, HTTPException, Response, status

from ..errors import DuplicateItemError, ItemNotFoundError
from ..models.repetition import (
    AnswerRequest,
    AnswerResponse,
    DefinitionResponse,
    DueItemResponse,
    ExistsResponse,
    ItemResponse,
    SaveItemRequest,
)
from ..providers import get_store

router = APIRouter(tags=["repetition"])


@router.post(
    "/{chat_id}/words",
    response_model=ItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="単語を復習対象として登録",
)
async def save_word(chat_id: int, req: SaveItemRequest) -> ItemResponse:
    """Register a new word; 409 if the chat already has it."""
    store = get_store()
    try:
        # anyio.to_thread.run_sync はキーワード引数を転送しないため partial で包む
        item = await anyio.to_thread.run_sync(partial(store.save, chat_id, req.word, req.definition))
    except DuplicateItemError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return ItemResponse(
        chat_id=item.owner,
        word=item.word,
        definition=item.definition,
        ease=item.ease,
        interval=item.interval,
        last_reviewed=item.last_reviewed,
        due_at=item.due_at,
    )


@router.get("/{chat_id}/due", response_model=DueItemResponse, summary="出題対象のカードを1件取得")
async def next_due(chat_id: int) -> DueItemResponse:
    """Return one due word together with its masked definition."""
    store = get_store()
    try:
        due = await anyio.to_thread.run_sync(partial(store.next_due, chat_id))
    except ItemNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return DueItemResponse(word=due.word, question=due.question)


@router.post("/{chat_id}/words/{word}/answer", response_model=AnswerResponse, summary="回答を記録して次回出題時刻を更新")
async def answer_word(chat_id: int, word: str, req: AnswerRequest) -> AnswerResponse:
    store = get_store()
    try:
        result = await anyio.to_thread.run_sync(partial(store.answer, chat_id, word, req.quality.to_ease()))
    except ItemNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return AnswerResponse(word=word, ease=result.ease, interval=result.interval, due_at=result.due_at)


@router.get("/{chat_id}/words/{word}", response_model=DefinitionResponse, summary="定義を取得")
async def get_definition(chat_id: int, word: str) -> DefinitionResponse:
    store = get_store()
    try:
        definition = await anyio.to_thread.run_sync(partial(store.get_definition, chat_id, word))
    except ItemNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return DefinitionResponse(word=word, definition=definition)


@router.get("/{chat_id}/words/{word}/exists", response_model=ExistsResponse, summary="登録済みか確認")
async def word_exists(chat_id: int, word: str) -> ExistsResponse:
    store = get_store()
    exists = await anyio.to_thread.run_sync(partial(store.exists, chat_id, word))
    return ExistsResponse(exists=exists)


@router.delete("/{chat_id}/words/{word}", status_code=status.HTTP_204_NO_CONTENT, summary="単語を削除")
async def delete_word(chat_id: int, word: str) -> Response:
    """Delete a word. Deleting an unknown word also returns 204."""
    store = get_store()
    await anyio.to_thread.run_sync(partial(store.delete, chat_id, word))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
