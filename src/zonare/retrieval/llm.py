"""LLM client and regulation analysis prompts.

Two one-shot extraction tasks over regulation text, both expecting JSON:
  1. extract_building_types(): which construction types a zone permits
  2. analyze_building_details(): POT / CUT / parcel / setback / frontage
     figures for one building type

Both degrade to empty / "??" values instead of raising. LLMClient.complete()
itself retries and then propagates the last failure.
"""

import asyncio
import json
import logging
import re

import httpx

from zonare.core.types import UNKNOWN, BuildingDetails
from zonare.observability.tracing import log_metrics, start_span, trace

logger = logging.getLogger(__name__)

# Granular timeouts: fail fast on connect, generous on read (LLM generation)
LLM_TIMEOUT = httpx.Timeout(connect=10.0, read=60.0, write=10.0, pool=5.0)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_CHAT_MODEL = "gpt-4o"
MAX_RETRIES = 3
RETRY_DELAY = 1.0
RATE_LIMIT_BUFFER = 0.1

MAX_BUILDING_TYPES_CHARS = 80_000
MAX_DETAILS_CONTEXT_CHARS = 40_000

_RATE_LIMIT_WAIT = re.compile(r"try again in (\d+)ms")

SYSTEM_PROMPT = (
    "Ești un expert în urbanism și reglementări de construcții din România. "
    "Extrage informații precise din documente și returnează DOAR JSON valid."
)


def _rate_limit_delay(response: httpx.Response, attempt: int) -> float:
    """Seconds to wait after a 429: the provider's hint + 100ms, else 2^attempt."""
    try:
        message = response.json().get("error", {}).get("message", "")
    except (ValueError, AttributeError):
        message = response.text
    match = _RATE_LIMIT_WAIT.search(message or "")
    if match:
        return int(match.group(1)) / 1000 + RATE_LIMIT_BUFFER
    return float(2 ** attempt)


class LLMClient:
    """OpenAI-compatible chat completions client with rate-limit aware retries."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_CHAT_MODEL,
        url: str = OPENAI_CHAT_URL,
        max_retries: int = MAX_RETRIES,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("OPENAI_API_KEY not set")
        self._api_key = api_key
        self.model = model
        self.url = url
        self.max_retries = max(1, max_retries)
        self._client = client

    async def _post(self, payload: dict) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if self._client is not None:
            return await self._client.post(self.url, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=LLM_TIMEOUT) as client:
            return await client.post(self.url, json=payload, headers=headers)

    async def complete(self, prompt: str, max_tokens: int = 500) -> str:
        """Send one user prompt under the urbanism system prompt; return the reply text.

        429 waits the provider-suggested time (or backs off exponentially);
        other failures wait RETRY_DELAY. The final attempt's error propagates.
        """
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.1,
            "max_tokens": max_tokens,
        }

        with start_span(name="llm_complete", span_type="CHAT_MODEL") as span:
            span.set_inputs({"model": self.model, "prompt_chars": len(prompt), "max_tokens": max_tokens})

            for attempt in range(1, self.max_retries + 1):
                is_last = attempt == self.max_retries
                try:
                    resp = await self._post(payload)
                    resp.raise_for_status()
                    data = resp.json()
                    content = data["choices"][0]["message"]["content"] or ""
                except httpx.HTTPStatusError as e:
                    status = e.response.status_code
                    logger.warning("LLM attempt %d/%d failed: HTTP %d", attempt, self.max_retries, status)
                    if is_last:
                        span.set_outputs({"error": f"http_{status}", "attempts": attempt})
                        raise
                    delay = _rate_limit_delay(e.response, attempt) if status == 429 else RETRY_DELAY
                    logger.info("Waiting %.1fs before retry", delay)
                    await asyncio.sleep(delay)
                    continue
                except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
                    logger.warning("LLM attempt %d/%d failed: %s", attempt, self.max_retries, e)
                    if is_last:
                        span.set_outputs({"error": str(e), "attempts": attempt})
                        raise
                    await asyncio.sleep(RETRY_DELAY)
                    continue

                usage = data.get("usage") or {}
                prompt_tokens = usage.get("prompt_tokens", 0)
                completion_tokens = usage.get("completion_tokens", 0)
                span.set_outputs({
                    "attempts": attempt,
                    "response_chars": len(content),
                    "prompt_tokens": prompt_tokens,
                    "completion_tokens": completion_tokens,
                })
                if prompt_tokens or completion_tokens:
                    log_metrics({
                        "llm_prompt_tokens": float(prompt_tokens),
                        "llm_completion_tokens": float(completion_tokens),
                    })
                return content

        raise RuntimeError("unreachable: retry loop exited without a result")


def _parse_llm_content(content: str):
    """Parse LLM JSON output, stripping ```json fences if present."""
    content = content.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return json.loads(content.strip())


def _building_types_prompt(pdf_text: str, zone_code: str) -> str:
    return f"""Analizează următorul regulament de urbanism pentru zona "{zone_code}" și extrage TOATE tipurile de construcții permise.

Regulament:
{pdf_text[:MAX_BUILDING_TYPES_CHARS]}

Te rog să identifici și să listezi TOATE tipurile de construcții/exploatări permise în această zonă. Răspunde DOAR cu un array JSON valid, cu string-uri simple.

Exemplu de format:
["locuințe individuale", "locuințe colective", "spații comerciale sub 250mp", "birouri", "restaurant", "cafenea", "servicii", "anexe gospodărești"]

Important:
- Returnează DOAR array-ul JSON, fără alt text
- Fiecare element trebuie să fie un tip de construcție permis
- Dacă nu găsești informații, returnează array gol: []"""


def _building_details_prompt(context: str, zone_code: str, building_type: str) -> str:
    return f"""Analizează următorul regulament de urbanism pentru zona "{zone_code}" și extrage informațiile specifice pentru construcțiile de tip "{building_type}".

Regulament:
{context[:MAX_DETAILS_CONTEXT_CHARS]}

Extrage următoarele informații SPECIFICE pentru "{building_type}" în zona {zone_code}:
1. POT (Procent de Ocupare a Terenului)
2. CUT (Coeficient de Utilizare a Terenului)
3. Suprafața minimă de parcelă construibilă
4. Distanța față de limitele proprietății
5. Deschiderea minimă la stradă

EXEMPLE CONCRETE DIN REGULAMENT:
- L1e: POT maxim = 30%, CUT maxim pentru înălţimi P = 0,1 mp. ADC/mp. teren
- L2a (locuințe colective mici): POT maxim = 45%, CUT maxim pentru înălţimi P+1 = 0,9 mp. ADC/mp. teren

Important:
- Returnează DOAR obiectul JSON valid, cu aceste 5 câmpuri exact
- Dacă o informație nu există în regulament, folosește "??"
- Fii precis și concis

Răspunde DOAR cu un obiect JSON valid:
{{
  "pot": "40%",
  "cut": "0.8",
  "suprafataMinima": "150mp",
  "distantaLimite": "3m",
  "deschidereStrada": "12m"
}}"""


@trace(name="extract_building_types", span_type="LLM")
async def extract_building_types(llm: LLMClient, pdf_text: str, zone_code: str) -> list[str]:
    """Ask the LLM which construction types the zone permits. Any failure → []."""
    if not pdf_text or not zone_code:
        return []

    logger.info("Extracting building types for zone: %s", zone_code, extra={"zone_code": zone_code})
    try:
        raw = await llm.complete(_building_types_prompt(pdf_text, zone_code), max_tokens=800)
        parsed = _parse_llm_content(raw)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse building types JSON for %s: %s", zone_code, e)
        return []
    except Exception as e:
        logger.error("Failed to extract building types for %s: %s", zone_code, e)
        return []

    if not isinstance(parsed, list):
        logger.warning("Building types response for %s is not a JSON array", zone_code)
        return []
    return [str(item).strip() for item in parsed if isinstance(item, (str, int, float)) and str(item).strip()]


# BuildingDetails field → keys the model may answer with.
_DETAIL_KEYS = {
    "pot": ("pot", "POT"),
    "cut": ("cut", "CUT"),
    "suprafata_minima": ("suprafataMinima", "suprafata_minima"),
    "distanta_limite": ("distantaLimite", "distanta_limite"),
    "deschidere_strada": ("deschidereStrada", "deschidere_strada"),
}


def building_details_from_json(data: dict) -> BuildingDetails:
    """Map the model's JSON object onto BuildingDetails; missing/empty → "??"."""
    values = {}
    for field_name, keys in _DETAIL_KEYS.items():
        val = next((data[k] for k in keys if data.get(k) not in (None, "")), None)
        values[field_name] = str(val).strip() if val is not None else UNKNOWN
    return BuildingDetails(**values)


@trace(name="analyze_building_details", span_type="LLM")
async def analyze_building_details(
    llm: LLMClient, context: str, zone_code: str, building_type: str,
) -> BuildingDetails:
    """Extract the five regulation figures for building_type in zone_code.

    Empty input, LLM failure or an unparseable answer all yield "??" fields.
    """
    if not context or not zone_code or not building_type:
        return BuildingDetails()

    logger.info(
        "Analyzing building details for zone: %s, type: %s (context %d chars)",
        zone_code, building_type, len(context),
        extra={"zone_code": zone_code, "step": "analyze"},
    )
    try:
        raw = await llm.complete(_building_details_prompt(context, zone_code, building_type), max_tokens=800)
        parsed = _parse_llm_content(raw)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse building details JSON for %s: %s", zone_code, e)
        return BuildingDetails()
    except Exception as e:
        logger.error("Failed to analyze building details for %s: %s", zone_code, e)
        return BuildingDetails()

    if not isinstance(parsed, dict):
        logger.warning("Building details response for %s is not a JSON object", zone_code)
        return BuildingDetails()
    return building_details_from_json(parsed)
