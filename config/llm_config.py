"""
LLM configuration for store enrichment.

The enrichment step is optional: without an API key it is skipped and the
records pass through unchanged.
"""

MODEL_ID: str = "claude-sonnet-4-20250514"

# Records per API call.  Each record adds a few lines of prompt and response.
MAX_RECORDS_PER_BATCH: int = 25

MAX_OUTPUT_TOKENS: int = 4096

# Approximate pricing used for the cost estimate shown in the UI (USD / token).
INPUT_TOKEN_COST: float = 3.0 / 1_000_000
OUTPUT_TOKEN_COST: float = 15.0 / 1_000_000

# Seconds to wait before the single retry of a failed call.
RETRY_DELAY_SECONDS: float = 2.0
