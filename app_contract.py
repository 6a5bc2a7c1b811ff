"""
Stable app-level constants used by runtime + tests.
Keep this file dependency-free (no rumps/requests/PIL/etc).
"""

APP_NAME = "LazyDM"
APP_VERSION = "v0.1.0"  # bump when you ship
SERVICE_NAME = "com.lazy-dm"

DEFAULT_EXTRACTOR_MODEL = "z-ai/glm-4.6v"
DEFAULT_SYNTHESIZER_MODEL = "deepseek/deepseek-v3.2"
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"

# Attachments above this are rejected before they are base64-encoded.
MAX_FILE_BYTES = 8 * 1024 * 1024

PREP_START_MARKER = "<!-- LAZY_DM_START -->"
PREP_END_MARKER = "<!-- LAZY_DM_END -->"

EXTRACTOR_MAX_ATTEMPTS = 2
ERROR_SNIPPET_CHARS = 200

GM_ZONES_SUFFIX = "_gm_zones"
DEFAULT_ZONE_COUNT = 6
DEFAULT_ZONE_PREFIX = "Z"
ZONE_LABEL_SCALE = 0.02
ZONE_LABEL_MIN_PX = 18

CMD_TEST = ("lazy-dm-test-openrouter", "Test OpenRouter")
CMD_SCAN = ("lazy-dm-scan-folder", "Scan Folder")
CMD_PREP = ("lazy-dm-generate-prep-2-step", "Generate Prep (2-step)")
CMD_ANNOTATE = ("lazy-dm-annotate-gm-zones", "Annotate Map (GM zones)")
CMD_OPEN_ZONES = ("lazy-dm-open-gm-zones", "Open GM Zones Map")

# TODO: Read per-model prices from the OpenRouter /models endpoint instead of a flat rate.
PRICE_PER_1M_INPUT_TOKENS_USD = 0.30
PRICE_PER_1M_OUTPUT_TOKENS_USD = 1.20
