"""
API 共用 dependency

測試時用 app.dependency_overrides 換掉這些（假的報價來源、測試用 session）
"""
from fastapi import Request

from database import SessionLocal
from services.quote_service import QuoteSource
from services.race_runner import RaceRunner


def get_quote_source(request: Request) -> QuoteSource:
    return request.app.state.quote_source


def get_race_runner(request: Request) -> RaceRunner:
    return request.app.state.race_runner


def get_session_factory():
    return SessionLocal
