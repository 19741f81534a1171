"""
Transaction Parsing Agent

Turns free text ("午饭 35 报销") or a screenshot of a receipt / payment app
into TransactionDrafts using Gemini.

CRITICAL BOUNDARIES:
- CAN: propose drafts (amount, kind, category, note, tags, date, confidence)
- CANNOT: touch the ledger. Every draft goes through the normalizer, and
  image results through batch review, before anything is committed.
- Output is untrusted: malformed items are skipped, unknown kinds and
  categories are kept raw for the user to fix.

FAILURE OUTCOMES (exactly two):
- CredentialMissingError: no API key, or the key was refused
- ParsingServiceError: anything else, after retrying
"Nothing recognized" is not an error: parse_text returns None and
parse_image returns [].
"""

import base64
import binascii
import json
import re
from datetime import date
from typing import Any, Callable, Optional, Union

import google.generativeai as genai
import structlog
from google.api_core import exceptions as google_exceptions
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from smartledger.config import GeminiSettings, get_settings
from smartledger.models.transaction import TransactionDraft


logger = structlog.get_logger(__name__)


class ParsingError(Exception):
    """Base exception for AI parsing."""
    pass


class CredentialMissingError(ParsingError):
    """No usable API key: the user has to configure one."""
    pass


class ParsingServiceError(ParsingError):
    """The parsing service failed (network, quota, malformed response...)."""
    pass


ApiKeyProvider = Callable[[], Optional[str]]
ModelFactory = Callable[[str], Any]


# =============================================================================
# PROMPTS
# =============================================================================

_SHARED_RULES = """金额规则:
- amount 一律使用【分】为单位的整数, 例如 ¥12.50 写作 1250。
- type 只能是 EXPENSE (支出)、INCOME (收入)、TRANSFER (转账) 之一。
- category 只能是 Food, Transport, Shopping, Housing, Salary, Investment, Other 之一 (用英文)。
- 报销/垫付类交易: tags 中加入 "报销"。
- 退款/退货类交易: amount 写成负数, type 仍为 EXPENSE, tags 中加入 "退款"。
- date 使用 YYYY-MM-DD 格式; 今天是 {today}, 相对日期 (昨天、上周五) 据此换算; 没有日期信息时省略。
- note 为简短的中文备注 (商户名或用途)。
- confidence 为 0 到 1 之间的小数, 表示识别把握。"""

TEXT_PROMPT = """你是记账助手, 负责把一句交易描述转换成一笔结构化记录。

{rules}

只返回一个 JSON 对象, 字段为 amount, type, category, note, tags, date, confidence。
如果描述中没有任何交易信息, 返回 null。

交易描述: "{text}"
"""

IMAGE_PROMPT = """你是记账助手。图片可能是支付截图、银行账单或购物小票, 请找出其中的每一笔交易。

{rules}

只返回一个 JSON 数组, 每个元素包含 amount, type, category, note, tags, date, confidence。
忽略界面上的 "OCR"、"识别" 等无关字样。
如果无法识别任何交易, 返回空数组 []。
"""

_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(;[\w=-]+)*;base64,", re.IGNORECASE)
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _shared_rules(today: Optional[date] = None) -> str:
    return _SHARED_RULES.format(today=(today or date.today()).isoformat())


def build_text_prompt(text: str, today: Optional[date] = None) -> str:
    return TEXT_PROMPT.format(rules=_shared_rules(today), text=text.replace('"', "'"))


def build_image_prompt(today: Optional[date] = None) -> str:
    return IMAGE_PROMPT.format(rules=_shared_rules(today))


# =============================================================================
# RESPONSE HANDLING
# =============================================================================

def decode_image(image: Union[bytes, str], mime_type: str = "image/jpeg") -> tuple[bytes, str]:
    """
    Accept raw bytes or a base64 string (optionally a data URL).

    Returns:
        (image bytes, mime type)

    Raises:
        ParsingServiceError: If the string is not valid base64
    """
    if isinstance(image, bytes):
        return image, mime_type

    text = image.strip()
    match = _DATA_URL.match(text)
    if match:
        mime_type = match.group("mime") or mime_type
        text = text[match.end():]
    try:
        return base64.b64decode(text, validate=True), mime_type
    except (binascii.Error, ValueError) as e:
        raise ParsingServiceError(f"Image data is not valid base64: {e}") from e


def _response_text(response: Any) -> str:
    try:
        text = response.text
    except ValueError:
        # Blocked or empty candidates: the SDK raises instead of returning ""
        return ""
    return (text or "").strip()


def parse_json_payload(text: str) -> Any:
    """
    Decode the model's JSON answer.

    Tolerates markdown code fences around the JSON.

    Raises:
        ParsingServiceError: If the text is not JSON
    """
    cleaned = _CODE_FENCE.sub("", text.strip()).strip()
    if not cleaned:
        return None
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ParsingServiceError(f"Model returned malformed JSON: {e}") from e


def drafts_from_payload(payload: Any) -> list[TransactionDraft]:
    """Validate each item into a draft, skipping the malformed ones."""
    if payload is None:
        return []
    items = payload if isinstance(payload, list) else [payload]

    drafts = []
    for position, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning("parse_item_skipped", position=position, reason="not an object")
            continue
        try:
            drafts.append(TransactionDraft.model_validate(item))
        except (ValidationError, ValueError) as e:
            logger.warning("parse_item_skipped", position=position, reason=str(e))
    return drafts


def _is_credential_failure(error: Exception) -> bool:
    if isinstance(error, (google_exceptions.PermissionDenied, google_exceptions.Unauthenticated)):
        return True
    # An invalid key comes back as a 400 rather than a 401/403
    return (
        isinstance(error, google_exceptions.InvalidArgument)
        and "api key" in str(error).lower()
    )


# =============================================================================
# AGENT
# =============================================================================

class TransactionParsingAgent:
    """
    Gemini-backed parser for text and images.

    Usage:
        agent = TransactionParsingAgent(api_key_provider=storage.load_api_key)
        draft = await agent.parse_text("打车 23.5")
        drafts = await agent.parse_image(png_bytes, "image/png")

    The API key is resolved on every call: a key saved in the app takes
    precedence over GEMINI_API_KEY.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        api_key_provider: Optional[ApiKeyProvider] = None,
        model_factory: Optional[ModelFactory] = None,
        retry_wait: Optional[Any] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._api_key_provider = api_key_provider
        self._model_factory = model_factory or self._create_model
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)

    def _create_model(self, api_key: str) -> Any:
        """Configure Google Generative AI."""
        genai.configure(api_key=api_key)
        return genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_output_tokens,
                "response_mime_type": "application/json",
            },
        )

    def resolve_api_key(self) -> str:
        """
        Raises:
            CredentialMissingError: If neither a stored nor an env key exists
        """
        key = self._api_key_provider() if self._api_key_provider else None
        key = (key or "").strip() or (self._settings.api_key or "").strip()
        if not key:
            raise CredentialMissingError("Gemini API key is not configured")
        return key

    async def _generate(self, contents: Any, source: str) -> Any:
        """Call the model with retries and return the decoded JSON payload."""
        model = self._model_factory(self.resolve_api_key())

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.max_attempts),
                wait=self._retry_wait,
                retry=retry_if_not_exception_type(CredentialMissingError),
                reraise=True,
            ):
                with attempt:
                    try:
                        response = await model.generate_content_async(contents)
                    except Exception as e:
                        if _is_credential_failure(e):
                            raise CredentialMissingError(str(e)) from e
                        raise ParsingServiceError(str(e)) from e
                    return parse_json_payload(_response_text(response))
        except ParsingError as e:
            logger.warning("parse_call_failed", source=source, error=str(e))
            raise
        except Exception as e:
            logger.warning("parse_call_failed", source=source, error=str(e))
            raise ParsingServiceError(str(e)) from e

    async def parse_text(self, text: str, today: Optional[date] = None) -> Optional[TransactionDraft]:
        """
        Parse one transaction from free text.

        Returns:
            The draft, or None if nothing was recognized
        """
        payload = await self._generate(build_text_prompt(text, today), source="text")
        drafts = drafts_from_payload(payload)
        logger.info("text_parsed", recognized=bool(drafts))
        return drafts[0] if drafts else None

    async def parse_image(
        self,
        image: Union[bytes, str],
        mime_type: str = "image/jpeg",
        today: Optional[date] = None,
    ) -> list[TransactionDraft]:
        """
        Parse every transaction visible in an image.

        Returns:
            Drafts in the order the model listed them ([] if none)
        """
        data, mime_type = decode_image(image, mime_type)
        contents = [
            {"mime_type": mime_type, "data": data},
            build_image_prompt(today),
        ]
        payload = await self._generate(contents, source="image")
        drafts = drafts_from_payload(payload)
        logger.info("image_parsed", count=len(drafts))
        return drafts
