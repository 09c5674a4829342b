"""
LLM client for contract risk analysis using the OpenAI chat completions API.
"""
import logging
import os
import threading
import time
from typing import Optional, Tuple

import openai
from openai import OpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from contract_shield.errors import ServiceError, ServiceErrorKind
from contract_shield.utils.credentials import ensure_credential, mask_credential

logger = logging.getLogger(__name__)

DEFAULT_MODEL = 'gpt-4o-mini'
DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_TOKENS = 8192
MAX_INPUT_CHARS = 50_000

# Latest client only; it is rebuilt when the credential or timeout changes
_client: Optional[OpenAI] = None
_client_key: Optional[Tuple[str, float]] = None
_client_lock = threading.Lock()

SYSTEM_PROMPT = """You are Contract Shield, an expert contract analyst for freelancers and independent contractors.

Analyze the contract you are given and provide:
1. A plain-English explanation of every significant clause
2. A risk level for each clause (high, medium, low, info)
3. Specific negotiation tips where relevant
4. Red flags that could harm the freelancer
5. Missing clauses that should be present

Always analyze from the FREELANCER'S perspective. Flag anything that:
- Gives the client too much power
- Limits the freelancer's rights unfairly
- Has vague payment terms
- Contains hidden penalties
- Lacks protections the freelancer should have

RESPONSE FORMAT (VALID JSON ONLY, a single object):
{
  "title": "Short descriptive title for this contract",
  "contractType": "Type of contract (e.g., Freelance Service Agreement, NDA)",
  "overallRisk": "high" | "medium" | "low",
  "overallSummary": "2-3 sentence plain English summary of the contract and its key implications",
  "clauses": [
    {
      "title": "Clause title",
      "originalText": "Exact text from the contract for this clause",
      "plainEnglish": "What this clause means in simple terms",
      "riskLevel": "high" | "medium" | "low" | "info",
      "riskExplanation": "Why this risk level was assigned",
      "negotiationTip": "How to negotiate this clause (include for medium/high risk)",
      "category": "payment" | "scope" | "termination" | "liability" | "ip" | "confidentiality" | "non_compete" | "indemnification" | "dispute" | "timeline" | "other"
    }
  ],
  "redFlags": ["Specific red flags found in this contract"],
  "missingClauses": ["Important clauses that are missing from this contract"],
  "negotiationSummary": "Overall negotiation strategy and priority changes to request"
}"""

USER_PROMPT_TEMPLATE = '''Please analyze the following contract and provide your assessment in the JSON format specified:

---

{contract_text}

---

Remember to respond ONLY with valid JSON.'''


def build_user_prompt(text: str) -> str:
    """Wrap the contract text, unmodified, in the user prompt template."""
    return USER_PROMPT_TEMPLATE.format(contract_text=text)


def _get_client(credential: str, timeout: float) -> OpenAI:
    """
    Get the OpenAI client for a credential, replacing the cached one if it differs.

    A replaced client is not closed here since a concurrent request may still hold
    it; its HTTP pool is released when the last reference goes away.
    """
    global _client, _client_key
    with _client_lock:
        if _client is None or _client_key != (credential, timeout):
            # Retries are handled by tenacity around _call_openai
            _client = OpenAI(api_key=credential, timeout=timeout, max_retries=0)
            _client_key = (credential, timeout)
            logger.info(f"OpenAI client initialized for credential {mask_credential(credential)}")
        return _client


def classify_openai_error(error: Exception) -> ServiceError:
    """
    Map an OpenAI SDK exception to a status-classified ServiceError.

    401/403 -> unauthorized, 429 -> rate_limited, anything else -> other.
    """
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ServiceError(ServiceErrorKind.UNAUTHORIZED, str(error), getattr(error, 'status_code', None))
    if isinstance(error, openai.RateLimitError):
        return ServiceError(ServiceErrorKind.RATE_LIMITED, str(error), 429)
    if isinstance(error, openai.APIStatusError):
        return ServiceError(ServiceErrorKind.OTHER, f"API error ({error.status_code}): {error}", error.status_code)
    if isinstance(error, openai.APITimeoutError):
        return ServiceError(ServiceErrorKind.OTHER, "AI analysis request timed out")
    if isinstance(error, openai.APIConnectionError):
        return ServiceError(ServiceErrorKind.OTHER, f"Could not reach the AI service: {error}")
    return ServiceError(ServiceErrorKind.OTHER, f"AI analysis service error: {type(error).__name__} - {error}")


@retry(
    stop=stop_after_attempt(2),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    retry=retry_if_exception_type((
        openai.RateLimitError,
        openai.APIConnectionError,
        openai.InternalServerError,
    )),
    reraise=True
)
def _call_openai(
    system_prompt: str,
    user_prompt: str,
    credential: str,
    model: str,
    timeout: float,
    max_tokens: int
) -> Optional[str]:
    """
    Call the chat completions API with retry on transient failures.

    Returns:
        Raw response text (may be None if the model returned no content).
    """
    client = _get_client(credential, timeout)
    response = client.chat.completions.create(
        model=model,
        messages=[
            {
                "role": "system",
                "content": system_prompt
            },
            {
                "role": "user",
                "content": user_prompt
            }
        ],
        response_format={"type": "json_object"},
        temperature=0.3,
        max_tokens=max_tokens,
    )
    if not response.choices:
        return None
    return response.choices[0].message.content


def invoke_model(
    system_prompt: str,
    user_prompt: str,
    credential: str,
    model: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
    max_tokens: int = DEFAULT_MAX_TOKENS
) -> str:
    """
    Send a prompt to the model and return its raw text.

    Args:
        system_prompt: The system message.
        user_prompt: The user message.
        credential: API key, passed through verbatim.
        model: Model name; defaults to OPENAI_MODEL or gpt-4o-mini.
        timeout: Per-request timeout in seconds.
        max_tokens: Completion token limit.

    Returns:
        Raw response text.

    Raises:
        MissingCredentialError: If the credential is empty.
        ServiceError: On any transport failure, non-2xx response or empty content.
    """
    ensure_credential(credential)
    model = model or os.getenv('OPENAI_MODEL', DEFAULT_MODEL)
    start_time = time.time()

    try:
        content = _call_openai(system_prompt, user_prompt, credential, model, timeout, max_tokens)
    except openai.OpenAIError as e:
        error = classify_openai_error(e)
        logger.error(
            f"Model call failed: kind={error.kind.value}, status={error.upstream_status}, "
            f"duration={time.time() - start_time:.2f}s, error={type(e).__name__}"
        )
        raise error from e

    if not content or not content.strip():
        logger.error("Model returned an empty response")
        raise ServiceError(ServiceErrorKind.OTHER, "No response from the AI service")

    logger.info(
        f"Model call complete: model={model}, response_chars={len(content)}, "
        f"duration={time.time() - start_time:.2f}s"
    )
    return content
