# backend/app/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from core.dependencies import get_cooking_hub, get_recipe_store
from features.cooking.router import router as cooking_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    print("\n" + "="*60)
    print(f"{settings.APP_NAME} 시작!")
    print("="*60)

    recipes = get_recipe_store()
    try:
        await recipes.ensure_file()
        print(f"레시피 저장소 준비 완료: {recipes.file_path}")
    except OSError as e:
        print(f"레시피 저장소 준비 실패: {e}")

    hub = get_cooking_hub()
    if hub:
        print(f"조리 허브 초기화 완료 (model={settings.OPENAI_MODEL}, tts={settings.OPENAI_TTS_MODEL})")
    else:
        print("조리 허브 초기화 실패! OPENAI_API_KEY를 확인하세요.")

    print("="*60 + "\n")

    yield

    if hub:
        await hub.shutdown()
    print("\n서버 종료")


app = FastAPI(
    title=settings.APP_NAME,
    description="비전 기반 실시간 조리 도우미",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cooking_router, prefix="/api/cook", tags=["Cooking"])


@app.get("/")
async def root():
    return {"message": settings.APP_NAME}


@app.get("/health")
async def health_check():
    hub = get_cooking_hub()
    return {
        "status": "healthy",
        "assistant_available": hub is not None,
        "model": settings.OPENAI_MODEL,
    }
