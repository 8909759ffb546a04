import os

# Load .env.test for local overrides (e.g. running against Postgres)
from dotenv import load_dotenv

env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

# Settings are read at import time by libs.db.config; make sure they exist
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "local")
os.environ.setdefault("PASS_AUTH_SECRET", "test-pass-secret")
for wallet_setting in (
    "APNS_KEY_ID",
    "APNS_TEAM_ID",
    "APNS_KEY_PATH",
    "GOOGLE_WALLET_ISSUER_ID",
    "GOOGLE_WALLET_SERVICE_ACCOUNT_EMAIL",
    "GOOGLE_WALLET_SERVICE_ACCOUNT_KEY_BASE64",
):
    # Tests wire wallet adapters explicitly
    os.environ.pop(wallet_setting, None)

from libs.common.config import get_settings  # noqa: E402

# Clear cached settings to reload with new env vars
get_settings.cache_clear()
