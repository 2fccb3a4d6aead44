"""
AI Investment Thesis (Google Gemini)
====================================
Turns a finished valuation into a short narrative thesis. The model only sees
rounded headline figures. Every failure mode (missing key, timeout, API error)
comes back as a readable string; nothing here raises into the valuation flow.
"""

import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from pathlib import Path

from dotenv import load_dotenv
from google import genai
from google.genai import types

from dcf_engine import ValuationResult
from peer_comps import get_subject_company
from scenarios import get_scenario

logger = logging.getLogger(__name__)

# Load local .env regardless of launch directory so the Gemini key is available.
load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env")

_genai_client: "genai.Client | None" = None
_GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
THESIS_TIMEOUT_SECONDS = float(os.getenv("THESIS_TIMEOUT_SECONDS", "30"))
THESIS_TEMPERATURE = 0.7
THESIS_TOP_P = 0.95

NO_KEY_MESSAGE = "Error: No API key found. Add GEMINI_API_KEY to your .env file."
TIMEOUT_MESSAGE = "AI Error: thesis generation timed out after {seconds:.0f}s."
EMPTY_RESPONSE_MESSAGE = "Unable to generate thesis at this time."

SYSTEM_ROLE = "Act as a Senior Equity Research Analyst."

THESIS_TASK = """
Provide a concise (300 words max), professional "Investment Thesis".
Focus on the risk/reward skew, the margin of safety, and the impact of the Qorvo merger.
Format the response using clean Markdown with bold headings.
"""

QUALITATIVE_CONTEXT = """
- Skyworks has 67% revenue concentration with Apple.
- They are merging with Qorvo (QRVO).
- Current Relative Strength (RS) is very low at 23.
"""


def _sanitize_valuation_language(value):
    """
    Prevent overconfident valuation phrasing in AI text.
    Fair value should always be framed as model-implied under assumptions.
    """
    if isinstance(value, str):
        text = value
        replacements = [
            (r"(?i)\bfundamental floor\b", "model-implied value under current assumptions"),
            (r"(?i)\bvaluation floor\b", "model-implied value under current assumptions"),
            (r"(?i)\bintrinsic floor\b", "model-implied value under current assumptions"),
            (r"(?i)\bhard floor\b", "assumption-sensitive downside case"),
            (r"(?i)\bguaranteed upside\b", "model-implied upside"),
        ]
        for pattern, replacement in replacements:
            text = re.sub(pattern, replacement, text)
        return text
    return value


def _redact_api_secrets(text: str, known_secret: str = "") -> str:
    if not isinstance(text, str):
        return text
    redacted = re.sub(r"(key=)[^&\s]+", r"\1[REDACTED]", text, flags=re.IGNORECASE)
    secret = (known_secret or "").strip()
    if secret:
        redacted = redacted.replace(secret, "[REDACTED]")
    return redacted


def config_genai():
    """Configures the Gemini API client. Returns the key (falsy if missing)."""
    global _genai_client
    api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    if api_key:
        _genai_client = genai.Client(api_key=api_key)
    return api_key


def get_gemini_model() -> tuple:
    """Returns (client, model_name) for use with the google.genai SDK."""
    return _genai_client, _GEMINI_MODEL


def _call_with_timeout(func, *args, timeout_seconds: float):
    """Run func in a single worker so a slow API call cannot block the caller."""
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(func, *args)
    try:
        return future.result(timeout=timeout_seconds)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def build_thesis_context(result: ValuationResult) -> str:
    """Headline numbers for the prompt, rounded for quoting."""
    subject = get_subject_company()
    cagr_parts = []
    for sc in result.scenarios:
        cagr = get_scenario(sc.scenario_key).revenue_cagr()
        cagr_parts.append(f"{sc.label.replace(' Case', '')}: {cagr * 100:.1f}%")

    return (
        f"Company: {subject['name']} ({subject['ticker']})\n"
        f"Scenario: {result.scenario_label}\n"
        f"- Current Price: ${result.snapshot.price:.2f}\n"
        f"- Implied Fair Value: ${result.implied_share_price:.2f}\n"
        f"- Potential Upside/Downside: {result.upside * 100:.1f}%\n"
        f"- Margin of Safety Target: ${result.bridge.margin_of_safety_target:.2f}\n"
        f"- WACC: {result.wacc_rate * 100:.2f}%\n"
        f"- 5-Year Rev CAGR: {', '.join(cagr_parts)}\n"
    )


def build_thesis_prompt(result: ValuationResult) -> str:
    return f"""
    SYSTEM ROLE: {SYSTEM_ROLE}

    DATA CONTEXT:
    {build_thesis_context(result)}
    Qualitative context:
    {QUALITATIVE_CONTEXT}

    YOUR TASK:
    {THESIS_TASK}
    """


def _request_thesis(prompt: str) -> str:
    client, model_name = get_gemini_model()
    response = client.models.generate_content(
        model=model_name,
        contents=prompt,
        config=types.GenerateContentConfig(temperature=THESIS_TEMPERATURE, top_p=THESIS_TOP_P),
    )
    return response.text


def generate_thesis(result: ValuationResult, timeout_seconds: float = THESIS_TIMEOUT_SECONDS) -> str:
    """
    Ask Gemini for a narrative thesis on the given valuation.

    Returns the model text, or an error string. Never raises.
    """
    api_key = config_genai()
    if not api_key:
        return NO_KEY_MESSAGE

    try:
        text = _call_with_timeout(_request_thesis, build_thesis_prompt(result), timeout_seconds=timeout_seconds)
    except FuturesTimeoutError:
        logger.warning("Gemini thesis request timed out after %ss", timeout_seconds)
        return TIMEOUT_MESSAGE.format(seconds=timeout_seconds)
    except Exception as e:
        detail = _redact_api_secrets(str(e), api_key)
        logger.warning("Gemini thesis request failed: %s", detail)
        return f"AI Error: {detail}"

    if not text:
        return EMPTY_RESPONSE_MESSAGE
    return _sanitize_valuation_language(text)
