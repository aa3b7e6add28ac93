"""AI-written financial summary backed by the Gemini ``generateContent`` API.

Only aggregate figures leave the process: income and expense totals, expense
per category and the number of investments. Any failure degrades to a
localized fallback sentence; :meth:`InsightsService.analyze` never raises.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Optional, Sequence

import httpx

from ..aggregates import expense_total, income_total
from ..config import Settings, settings
from ..i18n import t
from ..schemas import Investment, Language, Transaction, TransactionType

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """Atua como um consultor financeiro sénior. Analisa estes dados:
- Rendimento Total: {income} {currency}
- Despesa Total: {expense} {currency}
- Maiores Gastos por Categoria: {categories}
- Número de Investimentos: {investment_count}

Por favor, fornece:
1. Um breve resumo da saúde financeira (máximo 2 frases).
2. Duas dicas práticas para reduzir gastos ou otimizar investimentos.
3. Uma mensagem motivadora curta.

Responde em {language}.
Mantém um tom profissional, mas encorajador. Usa Markdown para a formatação.
"""

LANGUAGE_NAMES = {Language.pt: "Português de Portugal", Language.en: "English"}


def build_prompt(
    transactions: Sequence[Transaction],
    investments: Sequence[Investment],
    currency: str,
    lang: Language,
) -> str:
    categories: dict[str, Decimal] = {}
    for tx in transactions:
        if tx.type == TransactionType.expense:
            categories[tx.category] = categories.get(tx.category, Decimal("0")) + tx.amount
    return PROMPT_TEMPLATE.format(
        income=income_total(transactions),
        expense=expense_total(transactions),
        currency=currency,
        categories=json.dumps({k: float(v) for k, v in categories.items()}, ensure_ascii=False),
        investment_count=len(investments),
        language=LANGUAGE_NAMES[lang],
    )


class InsightsService:
    def __init__(
        self,
        api_key: str,
        model: str = "gemini-3-flash-preview",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "InsightsService":
        return cls(
            api_key=config.gemini_api_key,
            model=config.gemini_model,
            base_url=config.gemini_base_url,
            timeout=config.ai_timeout_seconds,
        )

    async def _generate(self, prompt: str) -> Optional[str]:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(
                f"{self._base_url}/models/{self._model}:generateContent",
                headers={"x-goog-api-key": self._api_key},
                json={"contents": [{"parts": [{"text": prompt}]}]},
            )
            response.raise_for_status()
            data = response.json()
        candidates = data.get("candidates") or []
        if not candidates:
            return None
        parts = candidates[0].get("content", {}).get("parts") or []
        text = "".join(
            part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
        ).strip()
        return text or None

    async def analyze(
        self,
        transactions: Sequence[Transaction],
        investments: Sequence[Investment],
        currency: str,
        lang: Language,
    ) -> str:
        if not transactions:
            return t("addTransactionsFirst", lang)
        fallback = t("aiUnavailable", lang)
        if not self._api_key:
            logger.warning("No AI API key configured; returning fallback summary")
            return fallback

        prompt = build_prompt(transactions, investments, currency, lang)
        try:
            text = await self._generate(prompt)
        except httpx.TimeoutException:
            logger.warning("AI summary timed out after %ss", self._timeout)
            return fallback
        except httpx.HTTPStatusError as exc:
            logger.warning("AI summary failed with HTTP %s", exc.response.status_code)
            return fallback
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.warning("AI summary failed: %s", exc)
            return fallback
        if text is None:
            logger.warning("AI summary returned no text")
            return fallback
        return text
