"""Generative definition client — asks the model for a structured glossary entry."""

import json
import logging

from desbuguei.agents.prompts import DEFINITION_SYSTEM, TERM_SCHEMA, build_definition_prompt
from desbuguei.config import Settings
from desbuguei.errors import DesbugueiError, GenerationError
from desbuguei.services.ai_client import AIClient, strip_code_fences

logger = logging.getLogger(__name__)


class DefinitionClient:
    def __init__(self, ai: AIClient, settings: Settings):
        self.ai = ai
        self.settings = settings

    async def generate(self, term: str) -> dict:
        """Return the raw structured payload for `term`.

        Raises GenerationError when the call fails or the reply is not a JSON object.
        """
        try:
            raw = await self.ai.chat(
                system=DEFINITION_SYSTEM,
                messages=[{"role": "user", "content": build_definition_prompt(term)}],
                max_tokens=self.settings.GENERATION_MAX_TOKENS,
                temperature=self.settings.GENERATION_TEMPERATURE,
                response_schema=TERM_SCHEMA,
            )
        except DesbugueiError:
            raise
        except Exception as e:
            raise GenerationError(f"Generation failed for '{term}': {e}") from e

        return parse_payload(raw, term)


def parse_payload(raw: str, term: str) -> dict:
    text = strip_code_fences(raw or "")
    if not text:
        raise GenerationError(f"Empty generation for '{term}'")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Unparsable generation for '%s': %.200s", term, text)
        raise GenerationError(f"Model returned invalid JSON for '{term}'") from e
    if not isinstance(payload, dict):
        raise GenerationError(f"Model returned {type(payload).__name__} instead of an object for '{term}'")
    return payload
