from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .errors import PersistenceError
from .logging import configure_logging, logger
from .middleware import AccessLogMiddleware, RequestIDMiddleware
from .providers import init_providers
from .routers import health, repetition, settings as settings_router

configure_logging()
app = FastAPI(title="Word Repetition API", version="0.1.0")

# 追加順の逆に実行されるため、RequestID を最外側に置く
app.add_middleware(AccessLogMiddleware)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(PersistenceError)
async def _persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error(
        "persistence_error",
        operation=exc.operation,
        chat_id=exc.owner,
        word=exc.word,
        error=str(exc),
        cause=repr(exc.__cause__),
    )
    return JSONResponse(status_code=500, content={"detail": "internal storage error"})


app.include_router(health.router)  # ヘルスチェック
app.include_router(repetition.router, prefix="/api/chats")  # 復習カード
app.include_router(settings_router.router, prefix="/api/chats")  # チャット設定


@app.on_event("startup")
async def _on_startup() -> None:
    # 移行処理はリクエスト受付前に完了させる（失敗時は起動を止める）
    init_providers()
    logger.info("startup_complete")
