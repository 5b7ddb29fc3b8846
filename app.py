"""
Chatbot Vendor Scanner – FastAPI Control Plane (Single File)

Run with:
    uvicorn app:app --reload
"""

import asyncio
import os
import sys
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

if sys.platform == 'win32':
    asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

from core.errors import ScannerError
from engines.scanner import ChatbotScanner, build_scanner

load_dotenv()


# =====================================================================
# Pydantic Schemas
# =====================================================================

class AnalysisRequest(BaseModel):
    url: Optional[str] = None


class WelcomeMessageResponse(BaseModel):
    evaluation: str
    attempts: str
    score: Optional[int] = None
    error: Optional[str] = None


class AnalysisResponse(BaseModel):
    url: str
    vendorName: Optional[str] = None
    method: str
    welcomeMessage: Optional[WelcomeMessageResponse] = None


# =====================================================================
# FastAPI App
# =====================================================================

app = FastAPI(
    title="Chatbot Vendor Scanner API",
    version="1.0",
    description="Detects chatbot vendors on web pages and evaluates their welcome messages"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if not os.getenv("OPENAI_API_KEY"):
    print("⚠️  WARNING: OPENAI_API_KEY is not set, welcome message analysis will fail")


@lru_cache(maxsize=None)
def get_scanner() -> ChatbotScanner:
    return build_scanner()


def _require_url(payload: AnalysisRequest) -> str:
    url = (payload.url or "").strip()
    if not url:
        raise HTTPException(status_code=400, detail="Missing URL")
    return url


# =====================================================================
# Health Check
# =====================================================================

@app.get("/health")
def health():
    return {"status": "ok"}


# =====================================================================
# Vendor Detection (+ welcome message when a vendor is found)
# =====================================================================

@app.post("/api/detect", response_model=AnalysisResponse)
async def detect(payload: AnalysisRequest, scanner: ChatbotScanner = Depends(get_scanner)):
    url = _require_url(payload)
    try:
        result = await scanner.analyze(url)
    except ScannerError as e:
        print(f"❌ Error in detect API: {e}")
        raise HTTPException(status_code=500, detail="Failed to analyze the page")
    return result.to_dict()


# =====================================================================
# Welcome Message Analysis
# =====================================================================

@app.post("/api/welcome-message", response_model=WelcomeMessageResponse, response_model_exclude_none=True)
async def welcome_message(payload: AnalysisRequest, scanner: ChatbotScanner = Depends(get_scanner)):
    url = _require_url(payload)
    try:
        result = await scanner.evaluate_welcome(url)
    except ScannerError as e:
        print(f"❌ Error analyzing welcome message: {e}")
        raise HTTPException(status_code=500, detail="Failed to analyze welcome message")
    return result.to_dict()
