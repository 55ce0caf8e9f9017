from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, List, Optional, Tuple
from .settings import settings


logger = logging.getLogger(__name__)

AI_STUDIO_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
VERTEX_URL = (
    "https://{region}-aiplatform.googleapis.com/v1/projects/{project}"
    "/locations/{region}/publishers/google/models/{model}:generateContent"
)


class GeminiError(RuntimeError):
    """The model call failed and no fallback produced text."""


def resolve_endpoint(model: str) -> Tuple[str, bool]:
    """Return (url, key_in_query) for the configured provider."""
    if settings.gemini_provider == "vertex":
        # Vertex takes the API key as a header
        url = VERTEX_URL.format(
            region=settings.vertex_region,
            project=settings.vertex_project or "placeholder-project",
            model=model,
        )
        return url, False
    return AI_STUDIO_URL.format(model=model), True


class GeminiClient:
    """Thin async wrapper over generateContent with an optional OpenRouter fallback for text prompts."""

    def __init__(self, api_key: Optional[str] = None, *, model: Optional[str] = None, timeout: float = 30) -> None:
        self.api_key = api_key or settings.gemini_api_key
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY is not configured")
        self.model = model or settings.gemini_model
        self.url, self._key_in_query = resolve_endpoint(self.model)
        self._http = httpx.AsyncClient(timeout=timeout)

    @property
    def fallback_enabled(self) -> bool:
        return bool(settings.openrouter_api_key)

    async def generate(
        self,
        prompt: str,
        *,
        system_instruction: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        body = self._body([{"text": prompt}], system_instruction, response_schema)
        try:
            return await self._call(body)
        except GeminiError as err:
            if not self.fallback_enabled:
                raise
            logger.warning("Gemini failed, trying OpenRouter: %s", err)
            if system_instruction:
                prompt = f"{system_instruction}\n\n{prompt}"
            return await self._openrouter(prompt, err)

    async def generate_multimodal(
        self,
        parts: List[Dict[str, Any]],
        *,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        # Audio parts cannot be forwarded to the text-only fallback
        return await self._call(self._body(parts, None, response_schema))

    def _body(
        self,
        parts: List[Dict[str, Any]],
        system_instruction: Optional[str],
        response_schema: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if response_schema is not None:
            body["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            }
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        return body

    async def _call(self, body: Dict[str, Any]) -> str:
        params: Dict[str, str] = {}
        headers: Dict[str, str] = {}
        if self._key_in_query:
            params["key"] = self.api_key
        else:
            headers["x-goog-api-key"] = self.api_key
        try:
            r = await self._http.post(self.url, params=params, headers=headers, json=body)
            r.raise_for_status()
        except httpx.HTTPError as err:
            raise GeminiError(f"Gemini request failed: {err}") from err
        try:
            return r.json()["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as err:
            raise GeminiError(f"Unexpected Gemini response: {r.text[:200]}") from err

    async def _openrouter(self, prompt: str, primary_error: Exception) -> str:
        headers = {
            "Authorization": f"Bearer {settings.openrouter_api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": settings.openrouter_referer,
            "X-Title": settings.openrouter_title,
        }
        payload = {
            "model": settings.openrouter_model,
            "messages": [{"role": "user", "content": prompt}],
        }
        try:
            r = await self._http.post(settings.openrouter_base_url, headers=headers, json=payload)
            r.raise_for_status()
            return r.json()["choices"][0]["message"]["content"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as err:
            raise GeminiError(
                f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
            ) from err

    async def aclose(self) -> None:
        await self._http.aclose()
