"""Service wiring: everything is built once from Settings and shared via app.state."""

from dataclasses import dataclass

from fastapi import Depends, Request

from desbuguei.config import Settings
from desbuguei.services.ai_client import AIClient
from desbuguei.services.definition_client import DefinitionClient
from desbuguei.services.term_service import TermService
from desbuguei.services.term_store import TermStore, build_term_store
from desbuguei.voice.gemini_live import GeminiLiveConnector
from desbuguei.voice.session import LiveConnector


@dataclass
class Services:
    settings: Settings
    store: TermStore
    ai: AIClient
    terms: TermService
    live_connector: LiveConnector


def build_services(settings: Settings) -> Services:
    store = build_term_store(settings)
    ai = AIClient(settings)
    terms = TermService(store, DefinitionClient(ai, settings), settings)
    return Services(
        settings=settings,
        store=store,
        ai=ai,
        terms=terms,
        live_connector=GeminiLiveConnector(ai, settings),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_term_service(services: Services = Depends(get_services)) -> TermService:
    return services.terms
