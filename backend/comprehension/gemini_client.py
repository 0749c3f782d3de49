from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, Optional
from .settings import settings

logger = logging.getLogger(__name__)


class GeminiClient:
	"""Thin async client for Gemini ``generateContent`` with an optional OpenRouter fallback."""

	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		timeout: Optional[float] = None,
		http_client: Optional[httpx.AsyncClient] = None,
		fallback_http_client: Optional[httpx.AsyncClient] = None,
	) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.provider = settings.gemini_provider
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		timeout = timeout if timeout is not None else settings.gemini_timeout_seconds
		self._client = http_client or httpx.AsyncClient(timeout=timeout)
		self._openrouter_api_key = settings.openrouter_api_key
		self._fallback_enabled = bool(self._openrouter_api_key)
		self._openrouter_model = settings.openrouter_model
		self._openrouter_base_url = settings.openrouter_base_url
		self._openrouter_headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}" if self._openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		self._fallback_client: Optional[httpx.AsyncClient] = None
		if self._fallback_enabled:
			self._fallback_client = fallback_http_client or httpx.AsyncClient(timeout=timeout)

	async def generate(
		self,
		prompt: str,
		*,
		system: Optional[str] = None,
		temperature: Optional[float] = None,
		json_mode: bool = False,
	) -> str:
		payload: Dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
		if system:
			payload["systemInstruction"] = {"parts": [{"text": system}]}
		generation_config: Dict[str, Any] = {}
		if temperature is not None:
			generation_config["temperature"] = temperature
		if json_mode:
			generation_config["responseMimeType"] = "application/json"
		if generation_config:
			payload["generationConfig"] = generation_config
		return await self._post_payload(payload, fallback_prompt=prompt, system=system)

	async def _post_payload(
		self,
		payload: Dict[str, Any],
		*,
		fallback_prompt: str,
		system: Optional[str] = None,
	) -> str:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		last_error: Optional[Exception] = None
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			if "generationConfig" in payload and http_err.response.status_code == 400:
				# Some models reject responseMimeType; retry once without generation config
				retry_payload = dict(payload)
				retry_payload.pop("generationConfig", None)
				try:
					r = await self._client.post(self.base_url, params=params, headers=headers, json=retry_payload)
					r.raise_for_status()
				except httpx.HTTPError as err:
					last_error = err
			else:
				last_error = http_err
		except httpx.RequestError as net_err:
			last_error = net_err
		if last_error is None:
			try:
				data = r.json()
				return data["candidates"][0]["content"]["parts"][0]["text"]
			except (ValueError, KeyError, IndexError, TypeError):
				last_error = RuntimeError(f"Unexpected Gemini response: {r.text[:500]}")
		if not self._fallback_enabled:
			raise last_error
		logger.warning("Gemini call failed (%s); trying OpenRouter fallback", last_error)
		return await self._fallback_generate(fallback_prompt, last_error, system=system)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(self, prompt: str, primary_error: Exception, *, system: Optional[str] = None) -> str:
		if not self._fallback_client or not self._openrouter_api_key:
			raise primary_error
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		messages = [{"role": "user", "content": prompt}]
		if system:
			messages.insert(0, {"role": "system", "content": system})
		payload: Dict[str, Any] = {
			"model": self._openrouter_model,
			"messages": messages,
		}
		try:
			r = await self._fallback_client.post(
				self._openrouter_base_url,
				headers=headers,
				json=payload,
			)
			r.raise_for_status()
			data = r.json()
			return data["choices"][0]["message"]["content"]
		except Exception as fallback_err:
			raise RuntimeError(
				f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
			) from fallback_err
