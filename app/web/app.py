"""FastAPI Web 应用入口。"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.web.routers.books import router as books_router
from app.web.routers.library import router as library_router
from app.web.routers.reading import router as reading_router

app = FastAPI(title="golden-quote", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(books_router)
app.include_router(reading_router)
app.include_router(library_router)


@app.get("/")
async def root():
    return JSONResponse({"message": "golden-quote API", "docs": "/docs"})
