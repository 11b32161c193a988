# leadstore/main.py

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
from dotenv import load_dotenv
from contextlib import asynccontextmanager

from leadstore.config import settings
from leadstore.utils.log import Log
from leadstore.utils.kv_store import FileKeyValueStore
from leadstore.utils.database import Storage
from leadstore.services.leads import LeadRepository
from leadstore.services.users import UserRepository

import os
import multiprocessing

# --- загрузка переменных окружения ---
load_dotenv()

# --- sync логгер для раннего старта ---
boot_log = Log()
if os.environ.get("RUN_MAIN") == "true" or multiprocessing.current_process().name == "MainProcess":
    boot_log.log_info_sync(target="startup", message="Импорты main.py выполнены")

# ────────────── Lifespan ──────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    boot_log.log_info_sync(target="startup", message="lifespan: startup начат")

    app.state.log = Log()

    # Одно хранилище на приложение, репозитории получают его явно
    storage = Storage(FileKeyValueStore(settings.STORAGE_DIR), app.state.log)
    await storage.get_handle()
    boot_log.log_info_sync(target="startup", message="База инициализирована", data={"dir": settings.STORAGE_DIR})

    app.state.storage = storage
    app.state.leads = LeadRepository(storage, app.state.log)
    app.state.users = UserRepository(storage, app.state.log)

    yield

    # shutdown
    await app.state.log.log_info(target="shutdown", message="Остановка приложения")
    await storage.close()
    await app.state.log.shutdown()
    boot_log.log_info_sync(target="shutdown", message="Log корректно завершён")

# ────────────── Создаём FastAPI приложение ──────────────
app = FastAPI(title="Campaign Leads API", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
def read_root():
    return {"message": "Campaign Leads API"}

# ────────────── Подключение роутов ──────────────
from leadstore.routes import auth, lead, dashboard, debug

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(lead.router, prefix="/lead", tags=["lead"])
app.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
if settings.is_on(settings.DEBUG_ROUTES):
    app.include_router(debug.router, prefix="/debug", tags=["debug"])

# ────────────── Запуск uvicorn ──────────────
if __name__ == "__main__":
    boot_log.log_info_sync(target="startup", message="Запуск uvicorn.run")
    uvicorn.run(
        "leadstore.main:app",
        host="127.0.0.1",
        port=8000,
        log_level="info",
        reload=True
    )
