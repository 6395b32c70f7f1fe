from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from services.market.types import GOOGLE_SEARCH_TOOL, TextGeneration, ToolInvocation

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class ExternalServiceError(RuntimeError):
    """Raised when a Gemini call fails or returns something unusable."""


@dataclass
class GeminiConfig:
    model: str = "gemini-2.5-flash"
    api_key: str = ""
    project_id: str = ""
    location: str = "us-central1"
    temperature: float = 0.3

    @staticmethod
    def from_env() -> "GeminiConfig":
        return GeminiConfig(
            model=os.getenv("GEMINI_MODEL") or "gemini-2.5-flash",
            api_key=(os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or "").strip(),
            project_id=(os.getenv("GCP_PROJECT_ID") or os.getenv("GOOGLE_CLOUD_PROJECT") or "").strip(),
            location=(
                os.getenv("GCP_LOCATION")
                or os.getenv("GOOGLE_CLOUD_LOCATION")
                or "us-central1"
            ).strip(),
            temperature=float(os.getenv("AI_TEMPERATURE", "0.3")),
        )


class GeminiMarketClient:
    """Text generation with Google Search grounding, and schema-constrained JSON generation."""

    def __init__(self, config: Optional[GeminiConfig] = None, *, sdk_client: Any = None):
        self.config = config or GeminiConfig.from_env()
        self._client = sdk_client

    def _sdk(self) -> Any:
        if self._client is not None:
            return self._client
        from google import genai

        if self.config.api_key:
            self._client = genai.Client(api_key=self.config.api_key)
        elif self.config.project_id:
            # Vertex AI; authenticates via GOOGLE_APPLICATION_CREDENTIALS
            self._client = genai.Client(
                vertexai=True,
                project=self.config.project_id,
                location=self.config.location,
            )
        else:
            raise ExternalServiceError("Missing GEMINI_API_KEY or GCP_PROJECT_ID")
        return self._client

    # ----------------------------
    # Response helpers
    # ----------------------------

    @staticmethod
    def _grounding_results(response: Any) -> List[Dict[str, str]]:
        results: List[Dict[str, str]] = []
        for candidate in getattr(response, "candidates", None) or []:
            metadata = getattr(candidate, "grounding_metadata", None)
            for chunk in getattr(metadata, "grounding_chunks", None) or []:
                web = getattr(chunk, "web", None)
                uri = getattr(web, "uri", None)
                if not uri:
                    continue
                results.append(
                    {
                        "title": getattr(web, "title", None) or getattr(web, "domain", None) or uri,
                        "url": uri,
                        "description": getattr(web, "domain", None) or "",
                    }
                )
        return results

    @classmethod
    def tool_results_from_response(cls, response: Any) -> List[ToolInvocation]:
        results = cls._grounding_results(response)
        if not results:
            return []
        return [ToolInvocation(tool_name=GOOGLE_SEARCH_TOOL, payload={"results": results})]

    @staticmethod
    def parse_structured(response: Any, schema: Type[SchemaT]) -> SchemaT:
        parsed = getattr(response, "parsed", None)
        try:
            if isinstance(parsed, schema):
                return parsed
            if isinstance(parsed, dict):
                return schema.model_validate(parsed)
            text = (getattr(response, "text", None) or "").strip()
            if not text:
                raise ExternalServiceError("Gemini returned an empty structured response")
            return schema.model_validate_json(text)
        except ValidationError as exc:
            raise ExternalServiceError(f"Gemini response does not match {schema.__name__}") from exc

    # ----------------------------
    # Sync SDK calls (run in a worker thread)
    # ----------------------------

    def _sync_generate_text(self, prompt: str) -> TextGeneration:
        from google.genai import types

        config = types.GenerateContentConfig(
            tools=[types.Tool(google_search=types.GoogleSearch())],
            temperature=self.config.temperature,
        )
        try:
            resp = self._sdk().models.generate_content(
                model=self.config.model,
                contents=prompt,
                config=config,
            )
        except ExternalServiceError:
            raise
        except Exception as exc:
            raise ExternalServiceError(f"Gemini text generation failed: {type(exc).__name__}") from exc

        text = getattr(resp, "text", None)
        if not text:
            raise ExternalServiceError("Gemini returned no text")
        return TextGeneration(text=text, tool_results=self.tool_results_from_response(resp))

    def _sync_generate_structured(self, prompt: str, schema: Type[SchemaT]) -> SchemaT:
        from google.genai import types

        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
            temperature=self.config.temperature,
        )
        try:
            resp = self._sdk().models.generate_content(
                model=self.config.model,
                contents=prompt,
                config=config,
            )
        except ExternalServiceError:
            raise
        except Exception as exc:
            raise ExternalServiceError(f"Gemini structured generation failed: {type(exc).__name__}") from exc
        return self.parse_structured(resp, schema)

    # ----------------------------
    # Public async API
    # ----------------------------

    async def generate_text_with_search(self, prompt: str) -> TextGeneration:
        started = time.perf_counter()
        logger.info("gemini.text.start model=%s prompt_len=%s", self.config.model, len(prompt))
        result = await asyncio.to_thread(self._sync_generate_text, prompt)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "gemini.text.done elapsed_ms=%s chars=%s tool_results=%s",
            elapsed_ms,
            len(result.text),
            len(result.tool_results),
        )
        return result

    async def generate_structured(self, prompt: str, schema: Type[SchemaT]) -> SchemaT:
        started = time.perf_counter()
        logger.info("gemini.structured.start model=%s schema=%s", self.config.model, schema.__name__)
        result = await asyncio.to_thread(self._sync_generate_structured, prompt, schema)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info("gemini.structured.done elapsed_ms=%s", elapsed_ms)
        return result
