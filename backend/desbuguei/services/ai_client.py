"""
Unified AI client.

Provider priority:
  1. Google Gemini     — when GEMINI_API_KEY is set (supports native JSON schema output)
  2. Oracle GenAI      — OCI request signing via ~/.oci/config
  3. Anthropic         — only when neither of the above is configured

A configured provider that fails surfaces its error; there is no silent
fallback to the next provider.
"""

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Optional

import anthropic
import oci
from google import genai
from google.genai import types

from desbuguei.config import Settings
from desbuguei.errors import GenerationError

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```[a-zA-Z0-9_-]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` block if the model added one."""
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_OPEN.sub("", text, count=1)
        text = _FENCE_CLOSE.sub("", text, count=1)
    return text.strip()


# ─────────────────────────────────────────────────────────────────────────────
# Oracle request / response builders
# ─────────────────────────────────────────────────────────────────────────────

def _build_oci_chat_body(
    settings: Settings,
    system: str,
    messages: list[dict],
    max_tokens: int,
    temperature: float,
) -> dict:
    """Build JSON body for POST /20231130/actions/chat."""
    model_id = settings.ORACLE_GENAI_MODEL
    serving_mode = {"servingType": "ON_DEMAND", "modelId": model_id}

    forced = settings.ORACLE_GENAI_API_FORMAT.strip().upper()
    is_cohere = forced == "COHERE" or (forced == "AUTO" and model_id.lower().startswith("cohere."))

    if is_cohere:
        # Cohere: single "message" string + optional history + preamble
        history = []
        for m in messages[:-1]:
            role = "USER" if m.get("role", "user") == "user" else "CHATBOT"
            history.append({"role": role, "message": m.get("content", "")})

        chat_req: dict = {
            "apiFormat": "COHERE",
            "message": messages[-1].get("content", "") if messages else "",
            "maxTokens": max_tokens,
            "temperature": temperature,
            "isStream": False,
        }
        if system:
            chat_req["preambleOverride"] = system
        if history:
            chat_req["chatHistory"] = history
    else:
        oci_msgs = []
        for m in messages:
            role = "USER" if m.get("role", "user") == "user" else "ASSISTANT"
            oci_msgs.append({
                "role": role,
                "content": [{"type": "TEXT", "text": m.get("content", "")}],
            })
        chat_req = {
            "apiFormat": "GENERIC",
            "messages": oci_msgs,
            "maxTokens": max_tokens,
            "temperature": temperature,
            "isStream": False,
        }
        if system:
            chat_req["systemMessage"] = system

    body: dict = {"servingMode": serving_mode, "chatRequest": chat_req}
    if settings.ORACLE_GENAI_COMPARTMENT_ID:
        body["compartmentId"] = settings.ORACLE_GENAI_COMPARTMENT_ID
    return body


def _extract_oci_text(response_json: dict) -> str:
    """Pull plain text from an /actions/chat response."""
    chat_resp = response_json.get("chatResponse", {})
    if chat_resp.get("apiFormat", "GENERIC") == "COHERE":
        return chat_resp.get("text", "")
    choices = chat_resp.get("choices", [])
    if not choices:
        return ""
    content = choices[0].get("message", {}).get("content", [])
    if isinstance(content, list) and content:
        return content[0].get("text", "")
    return str(content)


# ─────────────────────────────────────────────────────────────────────────────
# Client
# ─────────────────────────────────────────────────────────────────────────────

class AIClient:
    """Text generation over whichever provider the settings configure."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._gemini: Optional[genai.Client] = None

    # ── Status helpers ───────────────────────────────────────────────────────

    def gemini_configured(self) -> bool:
        return bool(self.settings.GEMINI_API_KEY)

    def oracle_configured(self) -> bool:
        s = self.settings
        return bool(s.OCI_CONFIG_FILE and s.OCI_CONFIG_PROFILE and s.ORACLE_GENAI_MODEL and s.ORACLE_GENAI_COMPARTMENT_ID)

    def anthropic_configured(self) -> bool:
        return bool(self.settings.ANTHROPIC_API_KEY)

    def provider_name(self) -> str:
        if self.gemini_configured():
            return f"Google Gemini ({self.settings.GEMINI_MODEL})"
        if self.oracle_configured():
            return f"Oracle GenAI OCI-Signed ({self.settings.ORACLE_GENAI_MODEL})"
        if self.anthropic_configured():
            return f"Anthropic ({self.settings.ANTHROPIC_MODEL})"
        return "none"

    def gemini(self) -> genai.Client:
        """Shared google-genai client (also used by the live voice connector)."""
        if self._gemini is None:
            self._gemini = genai.Client(api_key=self.settings.GEMINI_API_KEY)
        return self._gemini

    async def health_check(self) -> dict:
        """Live connectivity test — called by /api/health/ai."""
        provider = self.provider_name()
        if provider == "none":
            return {
                "provider": "none",
                "status": "unconfigured",
                "message": "Set GEMINI_API_KEY (or OCI / Anthropic settings) in backend/.env.",
            }
        try:
            reply = await self.chat(
                system="You are a test assistant.",
                messages=[{"role": "user", "content": "Reply with exactly: OK"}],
                max_tokens=10,
                temperature=0.0,
            )
            return {"provider": provider, "status": "ok", "test_reply": reply.strip()}
        except Exception as e:
            return {"provider": provider, "status": "error", "error": str(e)}

    # ── Public chat() ────────────────────────────────────────────────────────

    async def chat(
        self,
        system: str,
        messages: list[dict],
        max_tokens: int = 400,
        temperature: float = 0.7,
        response_schema: Optional[dict] = None,
    ) -> str:
        """Send a chat completion request and return the reply text.

        response_schema is enforced natively by Gemini. Other providers only
        see it as part of the system prompt, so callers must still parse
        defensively.
        """
        if self.gemini_configured():
            return await self._gemini_chat(system, messages, max_tokens, temperature, response_schema)

        if response_schema is not None:
            system = (
                f"{system}\n\nReturn ONLY valid JSON, no markdown fences, matching this schema:\n"
                f"{json.dumps(response_schema, ensure_ascii=False)}"
            )

        if self.oracle_configured():
            return await self._oracle_chat(system, messages, max_tokens, temperature)

        if self.anthropic_configured():
            return await self._anthropic_chat(system, messages, max_tokens, temperature)

        raise GenerationError(
            "[AI not configured] Set GEMINI_API_KEY in backend/.env "
            "(or OCI / Anthropic settings), then restart and open /api/health/ai."
        )

    # ── Google Gemini ────────────────────────────────────────────────────────

    async def _gemini_chat(
        self,
        system: str,
        messages: list[dict],
        max_tokens: int,
        temperature: float,
        response_schema: Optional[dict],
    ) -> str:
        contents = [
            types.Content(
                role="user" if m.get("role", "user") == "user" else "model",
                parts=[types.Part(text=m.get("content", ""))],
            )
            for m in messages
        ]
        config_kwargs: dict = {
            "system_instruction": system or None,
            "max_output_tokens": max_tokens,
            "temperature": temperature,
        }
        if response_schema is not None:
            config_kwargs["response_mime_type"] = "application/json"
            config_kwargs["response_schema"] = response_schema

        response = await self.gemini().aio.models.generate_content(
            model=self.settings.GEMINI_MODEL,
            contents=contents,
            config=types.GenerateContentConfig(**config_kwargs),
        )
        if not response.text:
            logger.warning("Gemini returned no text (model=%s)", self.settings.GEMINI_MODEL)
        return response.text or ""

    # ── Oracle GenAI — OCI signed requests ───────────────────────────────────

    def _oci_post(self, path: str, body: dict, timeout: tuple = (10.0, 300.0)) -> dict:
        """Perform a signed POST request via OCI base client and return JSON dict."""
        cfg_file = str(Path(self.settings.OCI_CONFIG_FILE).expanduser())
        cfg = oci.config.from_file(file_location=cfg_file, profile_name=self.settings.OCI_CONFIG_PROFILE)
        if self.settings.ORACLE_GENAI_BASE_URL:
            endpoint = self.settings.ORACLE_GENAI_BASE_URL.rstrip("/")
        else:
            region = cfg.get("region", "us-chicago-1")
            endpoint = f"https://inference.generativeai.{region}.oci.oraclecloud.com"

        client = oci.generative_ai_inference.GenerativeAiInferenceClient(
            config=cfg,
            service_endpoint=endpoint,
            timeout=timeout,
        )
        response = client.base_client.call_api(
            resource_path=path,
            method="POST",
            header_params={"content-type": "application/json"},
            body=body,
            response_type="str",
        )
        text = response.data if isinstance(response.data, str) else str(response.data)
        return json.loads(text)

    async def _oracle_chat(self, system: str, messages: list[dict], max_tokens: int, temperature: float) -> str:
        body = _build_oci_chat_body(self.settings, system, messages, max_tokens, temperature)
        # OCI SDK already prefixes the API version path (/20231130).
        data = await asyncio.to_thread(self._oci_post, "/actions/chat", body)
        return _extract_oci_text(data)

    # ── Anthropic ────────────────────────────────────────────────────────────

    async def _anthropic_chat(self, system: str, messages: list[dict], max_tokens: int, temperature: float) -> str:
        client = anthropic.AsyncAnthropic(api_key=self.settings.ANTHROPIC_API_KEY)
        try:
            response = await client.messages.create(
                model=self.settings.ANTHROPIC_MODEL,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=messages,
            )
        except anthropic.APIError as e:
            raise GenerationError(f"Anthropic error: {e}") from e
        return response.content[0].text if response.content else ""
