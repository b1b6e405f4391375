import os
from pathlib import Path

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# SQLite busy timeout; a lock held longer than this is a store failure.
DB_TIMEOUT_S = float(os.environ.get("DB_TIMEOUT_S", "5.0"))

# eBay Trading API
EBAY_API_URL = os.environ.get("EBAY_API_URL", "https://api.ebay.com/ws/api.dll")
EBAY_AUTH_TOKEN = os.environ.get("EBAY_AUTH_TOKEN", "")
EBAY_APP_NAME = os.environ.get("EBAY_APP_NAME", "")
EBAY_DEV_NAME = os.environ.get("EBAY_DEV_NAME", "")
EBAY_CERT_NAME = os.environ.get("EBAY_CERT_NAME", "")
EBAY_SITE_ID = os.environ.get("EBAY_SITE_ID", "0")
EBAY_COMPATIBILITY_LEVEL = os.environ.get("EBAY_COMPATIBILITY_LEVEL", "967")

MARKETPLACE_TIMEOUT_S = float(os.environ.get("MARKETPLACE_TIMEOUT_S", "5.0"))

# Listing classifier keyword table
DEFAULT_RULES_PATH = str(Path(__file__).resolve().parent / "rules" / "default_rules.json")
CLASSIFIER_RULES_PATH = os.environ.get("CLASSIFIER_RULES_PATH", DEFAULT_RULES_PATH)

# Age after which an in-progress ledger claim is treated as abandoned.
LEDGER_CLAIM_TTL_S = float(os.environ.get("LEDGER_CLAIM_TTL_S", "300"))
