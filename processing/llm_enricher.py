"""
LLM enricher — fills missing websites and descriptions using Claude Sonnet.

Only records with a blank website or a description that says nothing
(see utils.text_formatter.is_meaningful_description) are sent.  Fields that
already hold a value are never overwritten; a returned website is only used
when the record has none, a returned description only when the current one is
not meaningful.

Candidates are batched (MAX_RECORDS_PER_BATCH per call).  A failed call is
retried once after a short delay; a batch that fails twice, or whose
response cannot be parsed, is skipped.  Enrichment never raises: the records
come back unchanged for every batch that did not succeed.

If no API key is provided, the step is skipped entirely.

Public API:
    enrich_with_llm(records, api_key) → EnrichmentResult
    needs_enrichment(record) → bool
"""

import json
import logging
import re
import time
from dataclasses import dataclass, field, replace

from config.llm_config import (
    INPUT_TOKEN_COST,
    MAX_OUTPUT_TOKENS,
    MAX_RECORDS_PER_BATCH,
    MODEL_ID,
    OUTPUT_TOKEN_COST,
    RETRY_DELAY_SECONDS,
)
from processing.models import Store
from utils.text_formatter import format_description, is_meaningful_description
from utils.url_normalizer import normalize_url

logger = logging.getLogger(__name__)


_PROMPT_TEMPLATE = """You are a luxury brand archivist helping curate a collection of fashion and lifestyle brands.

TASK: For each brand below, find its official website URL and write a
professional, editorial description of exactly one sentence.

RULES:
- If the official website cannot be determined with certainty, return "" for
  the website.  Never guess a domain.
- The description must be high-end and editorial, one sentence, no marketing
  exclamations, no emoji.
- If you do not know the brand, return "" for both fields.
- Use the city and country only to tell apart brands with similar names.

BRANDS:
{brands_json}

Return a JSON array where each element has:
- "index": the index from the input
- "website": the official website URL or ""
- "description": the one-sentence description or \"\""""


# ═══════════════════════════════════════════════════════════════════════════
# Data classes
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class EnrichmentResult:
    """Output of the enrich_with_llm() function."""

    records: list[Store] = field(default_factory=list)
    enriched_items: list[dict] = field(default_factory=list)
    failed_batches: int = 0
    skipped: bool = False
    api_cost_estimate: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════

def enrich_with_llm(
    records: list[Store],
    api_key: str | None = None,
) -> EnrichmentResult:
    """
    Fill blank websites and weak descriptions using Claude Sonnet.

    Args:
        records: Records to enrich (typically the final import records).
        api_key: Anthropic API key. If None, the step is skipped.

    Returns:
        EnrichmentResult with the (possibly) updated records in input order
        and one entry per changed field.
    """
    result = EnrichmentResult(records=list(records))

    if not api_key:
        logger.info("No API key provided — skipping LLM enrichment step")
        result.skipped = True
        return result

    candidates = [index for index, record in enumerate(result.records) if needs_enrichment(record)]
    if not candidates:
        logger.info("No records need enrichment — skipping LLM call")
        return result

    batches = _create_batches(candidates, MAX_RECORDS_PER_BATCH)

    for batch_idx, batch in enumerate(batches):
        logger.info(
            f"Processing enrichment batch {batch_idx + 1}/{len(batches)} "
            f"({len(batch)} records)"
        )
        prompt = _build_prompt(result.records, batch)

        try:
            response_text, cost, input_tokens, output_tokens = _call_sonnet_api(prompt, api_key)
        except Exception as exc:
            logger.error(f"LLM API call failed: {exc}")
            try:
                time.sleep(RETRY_DELAY_SECONDS)
                response_text, cost, input_tokens, output_tokens = _call_sonnet_api(prompt, api_key)
            except Exception as retry_exc:
                logger.error(f"LLM API retry also failed: {retry_exc}")
                result.failed_batches += 1
                continue

        result.api_cost_estimate += cost
        result.input_tokens += input_tokens
        result.output_tokens += output_tokens

        suggestions = _parse_llm_response(response_text)
        if suggestions is None:
            logger.error("Failed to parse LLM response — skipping batch")
            result.failed_batches += 1
            continue

        result.enriched_items.extend(_apply_suggestions(result.records, batch, suggestions))

    logger.info(
        f"LLM enrichment complete: {len(result.enriched_items)} fields filled, "
        f"{result.failed_batches} batches failed, "
        f"estimated cost: ${result.api_cost_estimate:.4f}"
    )
    return result


def needs_enrichment(record: Store) -> bool:
    """True if the record has no website or no meaningful description."""
    return not normalize_url(record.website) or not is_meaningful_description(record.description)


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═══════════════════════════════════════════════════════════════════════════

def _build_prompt(records: list[Store], batch: list[int]) -> str:
    brands = [
        {
            "index": index,
            "store_name": records[index].store_name,
            "city": records[index].city or "unknown city",
            "country": records[index].country or "unknown country",
        }
        for index in batch
    ]
    brands_json = json.dumps(brands, indent=2, ensure_ascii=False)
    return _PROMPT_TEMPLATE.format(brands_json=brands_json)


def _call_sonnet_api(prompt: str, api_key: str) -> tuple[str, float, int, int]:
    """
    Call the Claude Sonnet API with the given prompt.

    Returns:
        (response_text, estimated_cost_usd, input_tokens, output_tokens)

    Raises:
        Exception: On API errors (network, auth, rate limit, etc.).
    """
    import anthropic

    client = anthropic.Anthropic(api_key=api_key)

    message = client.messages.create(
        model=MODEL_ID,
        max_tokens=MAX_OUTPUT_TOKENS,
        messages=[{"role": "user", "content": prompt}],
    )

    response_text = message.content[0].text
    input_tokens = message.usage.input_tokens
    output_tokens = message.usage.output_tokens
    estimated_cost = input_tokens * INPUT_TOKEN_COST + output_tokens * OUTPUT_TOKEN_COST

    logger.info(
        f"Sonnet API call: {input_tokens} input tokens, "
        f"{output_tokens} output tokens, est. cost ${estimated_cost:.4f}"
    )
    return response_text, estimated_cost, input_tokens, output_tokens


def _parse_llm_response(response_text: str) -> list[dict] | None:
    """
    Parse the JSON array from the LLM's response text.

    Handles markdown code fences (```json ... ```), text around the array,
    and trailing commas.

    Returns:
        List of suggestion dicts, or None if parsing fails.
    """
    if not response_text:
        return None

    fenced_match = re.search(r"```(?:json)?\s*\n?(.*?)```", response_text, re.DOTALL)
    json_text = fenced_match.group(1).strip() if fenced_match else response_text.strip()

    start_idx = json_text.find("[")
    end_idx = json_text.rfind("]")
    if start_idx == -1 or end_idx == -1:
        logger.error("No JSON array found in LLM response")
        return None

    json_text = json_text[start_idx : end_idx + 1]
    json_text = re.sub(r",\s*([}\]])", r"\1", json_text)

    try:
        suggestions = json.loads(json_text)
    except json.JSONDecodeError as exc:
        logger.error(f"Failed to parse LLM JSON response: {exc}")
        return None

    if not isinstance(suggestions, list):
        logger.error(f"Expected JSON array, got {type(suggestions).__name__}")
        return None

    return [item for item in suggestions if isinstance(item, dict)]


def _apply_suggestions(
    records: list[Store],
    batch: list[int],
    suggestions: list[dict],
) -> list[dict]:
    """
    Fill empty fields of the batch's records in place in *records*.

    Suggestions for indices outside the batch are ignored.

    Returns:
        One dict per field filled: {"index", "store_name", "field", "value"}.
    """
    allowed = set(batch)
    applied: list[dict] = []

    for suggestion in suggestions:
        index = suggestion.get("index")
        if not isinstance(index, int) or index not in allowed:
            logger.debug(f"Ignoring enrichment for unknown index {index!r}")
            continue

        record = records[index]
        updates: dict[str, str] = {}

        website = normalize_url(str(suggestion.get("website") or ""))
        if website and not normalize_url(record.website):
            updates["website"] = website

        description = format_description(str(suggestion.get("description") or ""))
        if description and not is_meaningful_description(record.description):
            updates["description"] = description

        if updates:
            records[index] = replace(record, **updates)
            for field_name, value in updates.items():
                applied.append({
                    "index": index,
                    "store_name": record.store_name,
                    "field": field_name,
                    "value": value,
                })

    return applied


def _create_batches(items: list[int], max_per_batch: int) -> list[list[int]]:
    """Split *items* into batches of at most *max_per_batch* each."""
    return [items[start : start + max_per_batch] for start in range(0, len(items), max_per_batch)]
