"""Glossary term schemas.

JSON uses the camelCase names the web client expects (fullTerm,
practicalUsage, relatedTerms); Python code uses snake_case attributes.
"""

from typing import Optional
from pydantic import BaseModel, Field

CATEGORIES = [
    "Desenvolvimento",
    "Infraestrutura",
    "Dados & IA",
    "Segurança",
    "Agile & Produto",
]

MAX_RELATED_TERMS = 6


class TitledText(BaseModel):
    title: str = ""
    description: str = ""

    class Config:
        frozen = True


class PracticalUsage(BaseModel):
    title: str = ""  # e.g. "Na reunião de alinhamento (Daily)"
    content: str = ""  # the sentence as a developer would say it

    class Config:
        frozen = True


class TermRecord(BaseModel):
    """A glossary entry. Instances are frozen; build a copy to change one."""

    id: str
    term: str
    full_term: str = Field("", alias="fullTerm")
    category: str = ""
    definition: str = ""
    phonetic: str = ""
    slang: Optional[str] = None
    translation: str = ""
    examples: list[TitledText] = Field(default_factory=list)
    analogies: list[TitledText] = Field(default_factory=list)
    practical_usage: PracticalUsage = Field(default_factory=PracticalUsage, alias="practicalUsage")
    related_terms: list[str] = Field(default_factory=list, alias="relatedTerms")

    class Config:
        frozen = True
        populate_by_name = True

    @property
    def is_valid(self) -> bool:
        return bool(self.definition and self.definition.strip())

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


class ResolvePending(BaseModel):
    """Returned when a resolution is still running after the escape wait."""
    status: str = "pending"
    query: str
    detail: str = "Ainda estamos gerando este termo. Tente novamente em instantes ou volte ao glossário."
    escape_path: str = "/"


class TermListResponse(BaseModel):
    terms: list[TermRecord]
    count: int


class SeedRequest(BaseModel):
    terms: Optional[list[str]] = None
