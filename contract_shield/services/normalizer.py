"""
Analysis normalizer - turns a raw model response into a ContractAnalysis.

This is the trust boundary of the pipeline: anything past `normalize()` is a
fully-typed record whose enum fields hold valid members.
"""
import json
import logging
import re
import secrets
import string
import time
from datetime import datetime
from typing import Any, Callable, List, Optional, Type, TypeVar

from contract_shield.errors import ParseError
from contract_shield.models import (
    ClauseCategory,
    ContractAnalysis,
    ContractClause,
    InputMethod,
    OverallRisk,
    RiskLevel,
)
from contract_shield.utils.dates import to_iso, utcnow

logger = logging.getLogger(__name__)

E = TypeVar('E')

# Aggregate risk has no `info`; anything that is not high/medium/low lands here
DEFAULT_OVERALL_RISK = OverallRisk.MEDIUM

DEFAULT_TITLE = 'Untitled Contract'
DEFAULT_CONTRACT_TYPE = 'Unknown'
DEFAULT_SUMMARY = 'Analysis complete.'

_FENCE_OPEN = re.compile(r'^```[A-Za-z]*[ \t]*\r?\n?')
_FENCE_CLOSE = re.compile(r'\r?\n?```\s*$')

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_analysis_id(now: Optional[datetime] = None) -> str:
    """
    Build a globally unique analysis id: `cs_<epoch millis>_<7 random chars>`.
    """
    millis = int((now.timestamp() if now else time.time()) * 1000)
    suffix = ''.join(secrets.choice(_ID_ALPHABET) for _ in range(7))
    return f"cs_{millis}_{suffix}"


def clause_id(analysis_id: str, index: int) -> str:
    return f"{analysis_id}_clause_{index}"


def strip_code_fence(text: str) -> str:
    """
    Remove a surrounding markdown code fence (```json ... ```), if present.

    Args:
        text: Raw model output.

    Returns:
        Text with the fence markers removed and whitespace trimmed.
    """
    stripped = text.strip()
    if stripped.startswith('```'):
        stripped = _FENCE_OPEN.sub('', stripped, count=1)
        stripped = _FENCE_CLOSE.sub('', stripped, count=1)
    return stripped.strip()


def parse_model_json(raw_text: str) -> dict:
    """
    Parse raw model output into a JSON object.

    Raises:
        ParseError: If the text is not JSON or not a JSON object.
    """
    if not isinstance(raw_text, str) or not raw_text.strip():
        raise ParseError("Model response is empty")

    candidate = strip_code_fence(raw_text)
    try:
        data = json.loads(candidate)
    except (json.JSONDecodeError, ValueError) as e:
        logger.error(f"Failed to parse model response as JSON: {e}")
        raise ParseError(f"Invalid JSON in model response: {e}") from e

    if not isinstance(data, dict):
        logger.error(f"Model response is JSON but not an object: {type(data).__name__}")
        raise ParseError("Model response is not a JSON object")
    return data


def coerce_enum(value: Any, enum_cls: Type[E], fallback: E) -> E:
    """
    Map `value` onto `enum_cls` by exact, case-sensitive match of its value.
    Anything else (None, numbers, unknown strings) yields `fallback`.
    """
    if isinstance(value, str):
        for member in enum_cls:
            if member.value == value:
                return member
    return fallback


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value:
        return value
    return default


def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _text_list(value: Any) -> List[str]:
    """Keep strings, render numbers and booleans as text, drop nulls and nested values."""
    if not isinstance(value, list):
        return []
    return [
        item if isinstance(item, str) else str(item)
        for item in value
        if isinstance(item, (str, int, float))
    ]


def _normalize_clause(raw: Any, analysis_id: str, index: int) -> ContractClause:
    # Non-object entries keep their position so later clause ids stay stable
    data = raw if isinstance(raw, dict) else {}
    return ContractClause(
        id=clause_id(analysis_id, index),
        title=_text(data.get('title'), f"Clause {index + 1}"),
        original_text=_text(data.get('originalText'), ''),
        plain_english=_text(data.get('plainEnglish'), ''),
        risk_level=coerce_enum(data.get('riskLevel'), RiskLevel, RiskLevel.INFO),
        risk_explanation=_text(data.get('riskExplanation'), ''),
        category=coerce_enum(data.get('category'), ClauseCategory, ClauseCategory.OTHER),
        negotiation_tip=_optional_text(data.get('negotiationTip')),
    )


def normalize(
    raw_model_text: str,
    raw_text: str,
    input_method: InputMethod = InputMethod.PASTE,
    file_name: Optional[str] = None,
    clock: Callable[[], datetime] = utcnow
) -> ContractAnalysis:
    """
    Convert an untrusted model response into a validated ContractAnalysis.

    Args:
        raw_model_text: Text returned by the model, optionally code-fenced.
        raw_text: The contract text that was submitted.
        input_method: How the text was acquired.
        file_name: Source file name, if any. Used as a title fallback.
        clock: Returns the normalization instant.

    Returns:
        A total ContractAnalysis with defaults applied to every missing field.

    Raises:
        ParseError: If the response is not a JSON object.
    """
    data = parse_model_json(raw_model_text)

    now = clock()
    analysis_id = generate_analysis_id(now)

    raw_clauses = data.get('clauses')
    if not isinstance(raw_clauses, list):
        raw_clauses = []
    clauses = [
        _normalize_clause(raw, analysis_id, index)
        for index, raw in enumerate(raw_clauses)
    ]

    analysis = ContractAnalysis(
        id=analysis_id,
        title=_text(data.get('title'), file_name or DEFAULT_TITLE),
        contract_type=_text(data.get('contractType'), DEFAULT_CONTRACT_TYPE),
        overall_risk=coerce_enum(data.get('overallRisk'), OverallRisk, DEFAULT_OVERALL_RISK),
        overall_summary=_text(data.get('overallSummary'), DEFAULT_SUMMARY),
        clauses=clauses,
        red_flags=_text_list(data.get('redFlags')),
        missing_clauses=_text_list(data.get('missingClauses')),
        negotiation_summary=_text(data.get('negotiationSummary'), ''),
        created_at=to_iso(now),
        raw_text=raw_text,
        input_method=InputMethod(input_method),
        file_name=file_name,
    )

    logger.info(
        f"Normalized analysis {analysis.id}: {len(clauses)} clauses, "
        f"{len(analysis.red_flags)} red flags, overall_risk={analysis.overall_risk.value}"
    )
    return analysis
