"""
AI Service - LLM integration for study content generation.

Provides abstraction over LLM providers (Gemini, OpenAI-compatible APIs)
for the generation collaborators used by the card pipeline:
- Vocabulary extraction from text or images
- Card detail synthesis (definition, examples, conjugation, image prompt)
- Grammar pattern enrichment
- Short stories from a word list
- Smart folder sorting
"""

import asyncio
import json
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import aiohttp

from ..config import Config
from ..exceptions import CollaboratorError, GenerationError, RateLimitError
from ..models import ImageInput
from ..utils.logger import setup_logger
from ..utils.retry import call_with_retry

logger = setup_logger(__name__)


class AIProvider(Enum):
    """Supported AI providers."""
    GEMINI = "gemini"
    OPENAI = "openai"  # Also Groq and other compatible APIs via base_url


@dataclass
class AIConfig:
    """Configuration for AI service."""
    provider: AIProvider = AIProvider.GEMINI
    model: str = "gemini-2.5-flash"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 4096
    timeout: int = 60


class BaseAIProvider(ABC):
    """Abstract base class for AI providers."""

    def __init__(self, config: AIConfig):
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        schema: Optional[Dict[str, Any]] = None,
        image: Optional[ImageInput] = None,
    ) -> str:
        """
        Generate completion for the given prompt.

        Args:
            prompt: User prompt
            system_prompt: Optional system instruction
            schema: JSON schema the response must follow (JSON mode if given)
            image: Optional image part

        Returns:
            Raw response text

        Raises:
            RateLimitError: On HTTP 429
            CollaboratorError: On any other transport or API failure
        """
        pass


class GeminiProvider(BaseAIProvider):
    """Google Gemini generateContent REST provider."""

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        schema: Optional[Dict[str, Any]] = None,
        image: Optional[ImageInput] = None,
    ) -> str:
        """Generate completion using the Gemini API."""
        session = await self._get_session()

        base_url = self.config.base_url or Config.GEMINI_API_URL
        url = f"{base_url}/{self.config.model}:generateContent"

        parts: List[Dict[str, Any]] = []
        if image is not None:
            parts.append({"inlineData": {"mimeType": image.mime_type, "data": image.data_base64}})
        parts.append({"text": prompt})

        generation_config: Dict[str, Any] = {"temperature": self.config.temperature}
        if schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = schema

        payload: Dict[str, Any] = {
            "contents": [{"parts": parts}],
            "generationConfig": generation_config,
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        try:
            async with session.post(url, params={"key": self.config.api_key or ""}, json=payload) as response:
                if response.status == 200:
                    data = await response.json()
                    return extract_gemini_text(data)
                error = await response.text()
                if response.status == 429:
                    raise RateLimitError(f"Gemini API rate limit: {error[:200]}", provider="gemini")
                raise CollaboratorError(
                    f"Gemini API error {response.status}: {error[:200]}",
                    provider="gemini",
                    status=response.status,
                )
        except asyncio.TimeoutError as e:
            raise CollaboratorError("Gemini API timeout", provider="gemini") from e
        except aiohttp.ClientError as e:
            raise CollaboratorError(f"Gemini API connection error: {e}", provider="gemini") from e


class OpenAIProvider(BaseAIProvider):
    """OpenAI API provider (also works with compatible APIs)."""

    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        schema: Optional[Dict[str, Any]] = None,
        image: Optional[ImageInput] = None,
    ) -> str:
        """Generate completion using OpenAI-compatible chat API."""
        session = await self._get_session()

        base_url = self.config.base_url or self.DEFAULT_BASE_URL
        url = f"{base_url}/chat/completions"

        system_text = system_prompt or ""
        if schema is not None:
            system_text += f"\nRespond with JSON only, matching this schema: {json.dumps(schema)}"

        messages: List[Dict[str, Any]] = []
        if system_text.strip():
            messages.append({"role": "system", "content": system_text.strip()})

        if image is not None:
            messages.append({
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": f"data:{image.mime_type};base64,{image.data_base64}"}},
                ],
            })
        else:
            messages.append({"role": "user", "content": prompt})

        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

        payload: Dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

        try:
            async with session.post(url, headers=headers, json=payload) as response:
                if response.status == 200:
                    data = await response.json()
                    return data["choices"][0]["message"]["content"] or ""
                error = await response.text()
                if response.status == 429:
                    raise RateLimitError(f"OpenAI API rate limit: {error[:200]}", provider="openai")
                raise CollaboratorError(
                    f"OpenAI API error {response.status}: {error[:200]}",
                    provider="openai",
                    status=response.status,
                )
        except asyncio.TimeoutError as e:
            raise CollaboratorError("OpenAI API timeout", provider="openai") from e
        except aiohttp.ClientError as e:
            raise CollaboratorError(f"OpenAI API connection error: {e}", provider="openai") from e


def extract_gemini_text(data: Dict[str, Any]) -> str:
    """Join the text parts of the first Gemini candidate."""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


_CODE_FENCE = re.compile(r'^```(?:json)?\s*|\s*```$')


def parse_json_response(text: str, expect_list: bool = False) -> Any:
    """
    Parse a JSON response from an LLM.

    Args:
        text: Raw response text (code fences are tolerated)
        expect_list: Unwrap {"items": [...]}-style objects into the list

    Returns:
        Parsed JSON value

    Raises:
        GenerationError: If the text is not valid JSON of the expected shape
    """
    cleaned = _CODE_FENCE.sub('', text.strip())
    try:
        data = json.loads(cleaned)
    except (json.JSONDecodeError, TypeError) as e:
        raise GenerationError(f"Unparsable collaborator output: {text[:120]!r}") from e

    if expect_list and isinstance(data, dict):
        lists = [v for v in data.values() if isinstance(v, list)]
        if len(lists) == 1:
            data = lists[0]
    if expect_list and not isinstance(data, list):
        raise GenerationError(f"Expected a JSON array, got {type(data).__name__}")
    if not expect_list and not isinstance(data, dict):
        raise GenerationError(f"Expected a JSON object, got {type(data).__name__}")
    return data


# JSON schemas (Gemini responseSchema dialect)

_PATTERN_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "target": {"type": "STRING"},
        "explanation": {"type": "STRING"},
    },
    "required": ["target", "explanation"],
}

_VERB_FORMS_SCHEMA = {
    "type": "OBJECT",
    "properties": {person: {"type": "STRING"} for person in ("eu", "tu", "ele", "nos", "eles")},
    "required": ["eu", "tu", "ele", "nos", "eles"],
}

EXTRACTION_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "word": {"type": "STRING"},
            "translation": {"type": "STRING"},
            "context": {"type": "STRING"},
        },
        "required": ["word", "translation", "context"],
    },
}

CARD_DETAILS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "definition": {"type": "STRING"},
        "grammarNotes": {"type": "STRING"},
        "visualPrompt": {"type": "STRING"},
        "frequency": {
            "type": "STRING",
            "enum": ["Top 500", "Top 1000", "Top 3000", "Top 5000", "10000+"],
        },
        "conjugation": {
            "type": "OBJECT",
            "properties": {
                "isVerb": {"type": "BOOLEAN"},
                "tenses": {
                    "type": "OBJECT",
                    "properties": {
                        tense: _VERB_FORMS_SCHEMA
                        for tense in ("presente", "perfeito", "imperfeito", "futuro")
                    },
                },
            },
            "required": ["isVerb"],
        },
        "examples": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "level": {"type": "STRING", "enum": ["A1", "A2", "B1", "B2"]},
                    "sentence": {"type": "STRING"},
                    "translation": {"type": "STRING"},
                    "patterns": {"type": "ARRAY", "items": _PATTERN_SCHEMA},
                },
                "required": ["level", "sentence", "translation"],
            },
        },
    },
    "required": ["definition", "grammarNotes", "examples", "visualPrompt", "conjugation"],
}

PATTERNS_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "level": {"type": "STRING"},
            "patterns": {"type": "ARRAY", "items": _PATTERN_SCHEMA},
        },
        "required": ["level", "patterns"],
    },
}

STORY_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "pt": {"type": "STRING"},
        "ru": {"type": "STRING"},
    },
    "required": ["pt", "ru"],
}

SMART_SORT_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "action": {"type": "STRING", "enum": ["move", "create"]},
            "targetFolderId": {"type": "STRING"},
            "suggestedFolderName": {"type": "STRING"},
            "cardIds": {"type": "ARRAY", "items": {"type": "STRING"}},
        },
        "required": ["action", "targetFolderId", "cardIds"],
    },
}


class AIService:
    """
    High-level AI service for study content generation.

    Every call goes through the rate-limit retry wrapper and returns
    parsed JSON; model conversion happens in the calling services.
    """

    # System prompts for different tasks
    SYSTEM_PROMPTS = {
        "extraction": """You select vocabulary for learners of European Portuguese.
Rules:
- If NOUN, include the definite article (o/a/os/as)
- If VERB, give the infinitive
- Translation and context in Russian
- Return a JSON array only""",

        "card": """You create study cards for European Portuguese.
Rules:
- Definition in simple Portuguese
- Exactly 4 examples, levels A1, A2, B1, B2
- Grammar notes in Russian
- Visual prompt: a concrete scene that shows the meaning, no text in the image
- Frequency rank estimate
- Conjugation (presente, perfeito, imperfeito, futuro) only for verbs""",

        "patterns": """You explain grammar patterns in Portuguese example sentences.
Rules:
- target is the Portuguese word or phrase from the sentence
- explanation is the grammar rule, in Russian""",

        "story": """You write very short European Portuguese stories (A2-B1) for learners.
Rules:
- 1-3 sentences using all the given words
- Return the Portuguese text (pt) and its Russian translation (ru)""",

        "smart_sort": """You sort vocabulary cards into folders.
Rules:
- Prefer existing folders (action "move" with their id)
- Create new folders (names in Russian) only for clusters of more than 1 card,
  with action "create", targetFolderId "NEW_FOLDER" and suggestedFolderName""",
    }

    def __init__(self, config: Optional[AIConfig] = None):
        """
        Initialize AI service.

        Args:
            config: AI configuration. If None, uses environment variables.
        """
        self.config = config or self._config_from_env()
        self._provider: Optional[BaseAIProvider] = None

    def _config_from_env(self) -> AIConfig:
        """Create config from environment variables."""
        provider_name = os.environ.get("AI_PROVIDER", "gemini").lower()

        provider_map = {
            "gemini": AIProvider.GEMINI,
            "openai": AIProvider.OPENAI,
        }

        model_defaults = {
            AIProvider.GEMINI: Config.GEMINI_TEXT_MODEL,
            AIProvider.OPENAI: "gpt-4o-mini",
        }

        provider = provider_map.get(provider_name, AIProvider.GEMINI)

        if provider == AIProvider.GEMINI:
            api_key = Config.GEMINI_API_KEY
        else:
            api_key = os.environ.get("OPENAI_API_KEY") or os.environ.get("GROQ_API_KEY")

        return AIConfig(
            provider=provider,
            model=os.environ.get("AI_MODEL", model_defaults[provider]),
            api_key=api_key,
            base_url=os.environ.get("AI_BASE_URL"),
            temperature=float(os.environ.get("AI_TEMPERATURE", "0.7")),
            timeout=Config.TIMEOUT,
        )

    def _get_provider(self) -> BaseAIProvider:
        """Get or create the appropriate provider."""
        if self._provider is None:
            provider_classes = {
                AIProvider.GEMINI: GeminiProvider,
                AIProvider.OPENAI: OpenAIProvider,
            }
            provider_class = provider_classes.get(self.config.provider, GeminiProvider)
            self._provider = provider_class(self.config)
        return self._provider

    async def close(self) -> None:
        """Close the AI service and release resources."""
        if self._provider:
            await self._provider.close()
            self._provider = None

    async def _complete(
        self,
        prompt: str,
        task: str,
        schema: Dict[str, Any],
        image: Optional[ImageInput] = None,
    ) -> str:
        provider = self._get_provider()
        try:
            return await call_with_retry(
                lambda: provider.complete(prompt, self.SYSTEM_PROMPTS[task], schema=schema, image=image)
            )
        except CollaboratorError as e:
            logger.error(f"AI {task} call failed: {e}")
            raise

    async def extract_vocabulary(
        self,
        source: Union[str, ImageInput],
        count: int = 5,
    ) -> List[Dict[str, Any]]:
        """
        Extract vocabulary items from text or an image.

        Args:
            source: Free text or an ImageInput
            count: Exact number of items requested

        Returns:
            Raw item dicts with word/translation/context

        Raises:
            GenerationError: If nothing parsable came back
        """
        prompt = f"Identify exactly {count} key words or phrases for learning European Portuguese."
        image = None
        if isinstance(source, ImageInput):
            image = source
        else:
            prompt = f'{prompt}\n\nInput Text: "{source}"'

        text = await self._complete(prompt, "extraction", EXTRACTION_SCHEMA, image=image)
        if not text.strip():
            raise GenerationError("No vocabulary found")
        return parse_json_response(text, expect_list=True)

    async def generate_card_details(self, word: str) -> Dict[str, Any]:
        """
        Generate structured card details for a word.

        Args:
            word: Term to describe

        Returns:
            Dict with definition, grammarNotes, visualPrompt, frequency,
            conjugation and examples
        """
        text = await self._complete(f'Generate details for "{word}"', "card", CARD_DETAILS_SCHEMA)
        if not text.strip():
            raise GenerationError("No details generated")
        return parse_json_response(text)

    async def enrich_card_patterns(self, term: str, examples: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Annotate grammar patterns in existing examples.

        Returns:
            List of {level, patterns}; empty if the provider returned nothing
        """
        prompt = f'Analyze grammar patterns for the word "{term}" in these sentences:\n{json.dumps(examples, ensure_ascii=False)}'
        text = await self._complete(prompt, "patterns", PATTERNS_SCHEMA)
        if not text.strip():
            return []
        return parse_json_response(text, expect_list=True)

    async def generate_story(self, words: List[str]) -> Dict[str, str]:
        """Generate a short story using the given words. Returns {pt, ru}."""
        text = await self._complete(f"Words: {', '.join(words)}", "story", STORY_SCHEMA)
        if not text.strip():
            raise GenerationError("Failed to generate story")
        story = parse_json_response(text)
        if not story.get("pt"):
            raise GenerationError("Story response has no Portuguese text")
        return {"pt": str(story["pt"]), "ru": str(story.get("ru", ""))}

    async def suggest_smart_sorting(
        self,
        cards: List[Dict[str, str]],
        folders: List[Dict[str, str]],
    ) -> List[Dict[str, Any]]:
        """
        Cluster cards into folders.

        Args:
            cards: Simplified cards [{id, term}]
            folders: Simplified folders [{id, name}]

        Returns:
            Raw suggestion dicts
        """
        prompt = (
            f"Folders: {json.dumps(folders, ensure_ascii=False)}\n"
            f"Cards: {json.dumps(cards, ensure_ascii=False)}"
        )
        text = await self._complete(prompt, "smart_sort", SMART_SORT_SCHEMA)
        if not text.strip():
            return []
        return parse_json_response(text, expect_list=True)

    @property
    def is_configured(self) -> bool:
        """Check if AI service is properly configured."""
        return bool(self.config.api_key)


# Convenience factory function
def create_ai_service(
    provider: str = "gemini",
    model: Optional[str] = None,
    api_key: Optional[str] = None
) -> AIService:
    """
    Create an AI service with specified configuration.

    Args:
        provider: Provider name (gemini, openai)
        model: Model name (uses default if None)
        api_key: API key (uses environment if None)

    Returns:
        Configured AIService instance
    """
    provider_enum = {
        "gemini": AIProvider.GEMINI,
        "openai": AIProvider.OPENAI,
    }.get(provider.lower(), AIProvider.GEMINI)

    default_key = Config.GEMINI_API_KEY if provider_enum == AIProvider.GEMINI else os.environ.get("OPENAI_API_KEY")

    config = AIConfig(
        provider=provider_enum,
        model=model or {
            AIProvider.GEMINI: Config.GEMINI_TEXT_MODEL,
            AIProvider.OPENAI: "gpt-4o-mini",
        }[provider_enum],
        api_key=api_key or default_key,
        timeout=Config.TIMEOUT,
    )

    return AIService(config)
