"""
Client for the hosted language model that turns booking text into fields.

OpenRouter is tried first and OpenAI second; both speak the OpenAI-compatible
`/chat/completions` API. The reply's first JSON object is validated into a
ParsedBookingRequest. Provider failures are collected, never raised.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx
from django.conf import settings

from .types import BookingRequestError, ParsedBookingRequest

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a calendar booking AI assistant. Parse natural language booking requests and extract structured data.

Return ONLY a valid JSON object (no markdown, no extra text) with this exact structure:
{
  "attendees": ["name1", "name2"],
  "daysOfWeek": ["monday", "wednesday"],
  "day": null,
  "startTime": "09:00",
  "endTime": "10:00",
  "month": 12,
  "year": 2025,
  "title": "meeting name"
}

Rules:
- attendees: array of lowercase names mentioned with "with"
- daysOfWeek: array of lowercase day names (monday-sunday)
- day: day of the month (1-31) when a specific date is given, otherwise null
- startTime/endTime: 24-hour HH:MM format
- month: 1-12 (if not specified, use current month)
- year: 4-digit (if not specified, use current year)
- title: the meeting type/name (default: "Team Meeting")"""


@dataclass(frozen=True)
class Provider:
    name: str
    base_url: str
    api_key: str
    model: str


@dataclass(frozen=True)
class ParserError:
    provider: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {'provider': self.provider, 'message': self.message}


def providers_from_settings() -> List[Provider]:
    """Configured providers in preference order (OpenRouter, then OpenAI)."""
    providers = []

    if settings.OPENROUTER_API_KEY:
        providers.append(Provider(
            name='openrouter',
            base_url=settings.OPENROUTER_BASE_URL.rstrip('/'),
            api_key=settings.OPENROUTER_API_KEY,
            model=settings.OPENROUTER_MODEL,
        ))

    if settings.OPENAI_API_KEY:
        providers.append(Provider(
            name='openai',
            base_url=settings.OPENAI_API_BASE_URL.rstrip('/'),
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
        ))

    return providers


def extract_json_object(raw_text: str) -> Optional[Dict[str, Any]]:
    """Return the first JSON object found in a model reply, if any."""
    text = (raw_text or '').strip()
    if not text:
        return None

    try:
        payload = json.loads(text)
        if isinstance(payload, dict):
            return payload
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    for index, char in enumerate(text):
        if char != '{':
            continue
        try:
            payload, _ = decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            return payload

    return None


def _completion_text(payload: Dict[str, Any]) -> str:
    """Text of the first choice; content may be a string or a list of parts."""
    if not isinstance(payload, dict):
        return ''
    choices = payload.get('choices') or []
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ''

    message = choices[0].get('message')
    if not isinstance(message, dict):
        return ''
    content = message.get('content')
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        for item in content:
            if isinstance(item, str):
                return item
            if isinstance(item, dict) and item.get('type') == 'text':
                return item.get('text') or ''
    return ''


def _provider_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get('error')
        if isinstance(error, dict) and error.get('message'):
            return str(error['message'])
    return response.text.strip() or f'HTTP {response.status_code}'


class BookingParser:
    """
    Turns free text into a ParsedBookingRequest via a hosted model.

    Args:
        providers: Providers to try in order (defaults to settings)
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        providers: Optional[List[Provider]] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.providers = providers if providers is not None else providers_from_settings()
        self.timeout = timeout if timeout is not None else settings.BOOKING_PARSER_TIMEOUT
        self.transport = transport

    def parse(self, text: str) -> Tuple[Optional[ParsedBookingRequest], List[ParserError]]:
        """
        Parse a booking request.

        Args:
            text: Natural-language booking request

        Returns:
            Tuple of (ParsedBookingRequest or None, errors collected on the way)
        """
        errors = []

        if not self.providers:
            logger.error('No language model provider configured')
            errors.append(ParserError('none', 'No provider configured. Set OPENROUTER_API_KEY or OPENAI_API_KEY.'))
            return None, errors

        reply = ''
        for provider in self.providers:
            try:
                reply = self._complete(provider, text)
            except (httpx.HTTPError, RuntimeError, ValueError) as exc:
                logger.warning('%s request failed: %s', provider.name, exc)
                errors.append(ParserError(provider.name, str(exc)))
                continue
            if reply:
                break
            errors.append(ParserError(provider.name, 'Empty response'))

        if not reply:
            errors.append(ParserError('none', 'No provider returned a response'))
            return None, errors

        payload = extract_json_object(reply)
        if payload is None:
            logger.error('No JSON found in model response: %r', reply[:200])
            errors.append(ParserError('model', 'No JSON found in model response'))
            return None, errors

        try:
            return ParsedBookingRequest.from_payload(payload), errors
        except BookingRequestError as exc:
            errors.append(ParserError('model', f'Invalid booking request: {exc}'))
            return None, errors

    def _complete(self, provider: Provider, text: str) -> str:
        """Send one chat completion and return the reply text."""
        payload = {
            'model': provider.model,
            'max_tokens': 500,
            'messages': [
                {'role': 'system', 'content': SYSTEM_PROMPT},
                {'role': 'user', 'content': f'Parse this booking request: "{text}"'},
            ],
        }
        headers = {
            'Authorization': f'Bearer {provider.api_key}',
            'Content-Type': 'application/json',
        }

        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            response = client.post(f'{provider.base_url}/chat/completions', headers=headers, json=payload)

        if response.status_code >= 400:
            raise RuntimeError(_provider_error_message(response))

        return _completion_text(response.json()).strip()
