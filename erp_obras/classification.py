from __future__ import annotations

import http.client
import json
import logging
import os
import unicodedata
import urllib.error
import urllib.parse
import urllib.request
from typing import Iterable, List

from flask import current_app

from erp_obras.domain.models import (
    DEFAULT_ITEM_CATEGORY,
    DEFAULT_ITEM_UNIT,
    MaterialClassification,
    MaterialOrder,
)
from erp_obras.errors import IntegrationError


LOGGER = logging.getLogger("erp_obras.classification")

FALLBACK_CLASSIFICATION = MaterialClassification(category=DEFAULT_ITEM_CATEGORY, unit=DEFAULT_ITEM_UNIT)

FALLBACK_INSIGHTS = [
    "Mantenha o controle rigoroso das cotações.",
    "Considere compras em volume.",
    "Verifique prazos de entrega.",
]

# (keywords, category, unit); first match wins
_KEYWORD_RULES = (
    (("cimento", "cal ", "tijolo", "bloco"), "Básico", "sc"),
    (("areia", "brita", "pedra", "pedrisco"), "Agregados", "m3"),
    (("ferro", "aco", "vergalhao", "tela soldada", "arame"), "Estrutural", "m"),
    (("prego", "parafuso", "bucha", "rebite"), "Fixação", "kg"),
    (("tabua", "madeira", "pinus", "caibro", "sarrafo", "compensado"), "Madeiramento", "un"),
    (("argamassa", "rejunte", "tinta", "massa corrida", "azulejo", "piso", "porcelanato"), "Acabamento", "sc"),
    (("fio", "cabo", "disjuntor", "tomada", "eletroduto"), "Elétrica", "m"),
    (("tubo", "cano", "registro", "joelho", "conexao"), "Hidráulica", "un"),
)

_UNIT_OVERRIDES = (
    (("tinta",), "l"),
    (("piso", "azulejo", "porcelanato"), "m2"),
    (("tijolo", "bloco"), "un"),
)


class ClassificationError(IntegrationError):
    default_code = "ai_unavailable"
    default_message_key = "ai_temporarily_unavailable"


def classify_material(name: str) -> MaterialClassification:
    description = str(name or "").strip()
    if not description:
        return FALLBACK_CLASSIFICATION
    mode = str(_get_config("AI_MODE", "mock") or "mock").lower()
    try:
        if mode == "mock":
            return _classify_by_keywords(description)
        if mode != "gemini":
            raise ClassificationError(details=f"AI_MODE invalido: {mode}")
        return _classify_remote(description)
    except ClassificationError as exc:
        LOGGER.warning("material_classification_fallback", extra={"material": description, "details": exc.details})
        return FALLBACK_CLASSIFICATION


def order_insights(orders: Iterable[MaterialOrder], project_budget: float) -> List[str]:
    mode = str(_get_config("AI_MODE", "mock") or "mock").lower()
    if mode != "gemini":
        return list(FALLBACK_INSIGHTS)
    prompt = (
        "Analise estes pedidos de obra: "
        f"{json.dumps([order.to_dict() for order in orders], ensure_ascii=False)}. "
        f"Orçamento total: R$ {project_budget}. Dê 3 dicas curtas de economia ou alertas de preço."
    )
    try:
        parsed = _generate_json(prompt, {"type": "ARRAY", "items": {"type": "STRING"}})
    except ClassificationError as exc:
        LOGGER.warning("order_insights_fallback", extra={"details": exc.details})
        return list(FALLBACK_INSIGHTS)
    tips = [str(tip).strip() for tip in parsed if str(tip).strip()] if isinstance(parsed, list) else []
    return tips[:3] or list(FALLBACK_INSIGHTS)


def _normalize(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _classify_by_keywords(description: str) -> MaterialClassification:
    normalized = f"{_normalize(description)} "
    for keywords, category, unit in _KEYWORD_RULES:
        if any(keyword in normalized for keyword in keywords):
            for override_keywords, override_unit in _UNIT_OVERRIDES:
                if any(keyword in normalized for keyword in override_keywords):
                    unit = override_unit
                    break
            return MaterialClassification(category=category, unit=unit)
    return FALLBACK_CLASSIFICATION


def _classify_remote(description: str) -> MaterialClassification:
    prompt = (
        "Classifique o seguinte material de construção civil e sugira uma unidade de medida comum "
        f'(kg, m2, un, m3, etc): "{description}"'
    )
    schema = {
        "type": "OBJECT",
        "properties": {"category": {"type": "STRING"}, "unit": {"type": "STRING"}},
        "required": ["category", "unit"],
    }
    parsed = _generate_json(prompt, schema)
    if not isinstance(parsed, dict):
        raise ClassificationError(details="Resposta da IA nao e um objeto.")
    category = str(parsed.get("category") or "").strip()
    unit = str(parsed.get("unit") or "").strip()
    if not category or not unit:
        raise ClassificationError(details="Resposta da IA sem categoria ou unidade.")
    return MaterialClassification(category=category, unit=unit)


def _generate_json(prompt: str, schema: dict) -> object:
    api_key = _get_config("AI_API_KEY")
    if not api_key:
        raise ClassificationError(details="AI_API_KEY nao configurada.")
    base_url = str(_get_config("AI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")).rstrip("/")
    model = _get_config("AI_MODEL", "gemini-1.5-flash")
    url = f"{base_url}/models/{urllib.parse.quote(str(model))}:generateContent?key={urllib.parse.quote(str(api_key))}"
    body = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {"responseMimeType": "application/json", "responseSchema": schema},
    }
    response = _request_json("POST", url, body)
    try:
        text = response["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ClassificationError(details="Resposta da IA sem conteudo.") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ClassificationError(details="IA retornou JSON invalido.") from exc


def _request_json(method: str, url: str, payload: dict | None = None) -> dict:
    timeout = _int_config("AI_TIMEOUT_SECONDS", 15)
    headers = {"Accept": "application/json"}
    data = None
    if payload is not None:
        headers["Content-Type"] = "application/json"
        data = json.dumps(payload, separators=(",", ":"), ensure_ascii=True).encode("utf-8")

    request = urllib.request.Request(url, data=data, headers=headers, method=method.upper())
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            raw = response.read().decode("utf-8")
            parsed = json.loads(raw) if raw else {}
    except urllib.error.HTTPError as exc:  # noqa: PERF203
        error_body = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
        raise ClassificationError(details=f"IA HTTP {exc.code}: {error_body[:200]}") from exc
    except urllib.error.URLError as exc:
        raise ClassificationError(details=f"Erro de conexao com a IA: {exc.reason}") from exc
    except (TimeoutError, OSError) as exc:
        raise ClassificationError(details=f"Falha de rede com a IA: {exc}") from exc
    except http.client.HTTPException as exc:
        raise ClassificationError(details=f"Resposta HTTP incompleta da IA: {exc!r}") from exc
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ClassificationError(details="IA retornou JSON invalido.") from exc
    if not isinstance(parsed, dict):
        raise ClassificationError(details="Resposta inesperada da IA.")
    return parsed


def _get_config(key: str, default: object | None = None) -> object | None:
    try:
        return current_app.config.get(key, default)
    except RuntimeError:
        return os.environ.get(key, default)


def _int_config(key: str, default: int) -> int:
    value = _get_config(key, default)
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
