import os

from dotenv import load_dotenv

load_dotenv()

DB_HOST = os.getenv("DB_HOST", "127.0.0.1")
DB_PORT = int(os.getenv("DB_PORT", "3306"))
DB_USER = os.getenv("DB_USER", "root")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_NAME = os.getenv("DB_NAME", "adsreport")
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))

if not DB_PASSWORD:
    raise RuntimeError("DB_PASSWORD is missing. Set it in .env file.")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

META_GRAPH_VERSION = os.getenv("META_GRAPH_VERSION", "v22.0")
# used when a client row has neither its own token nor a system user token
META_SYSTEM_USER_TOKEN = os.getenv("META_SYSTEM_USER_TOKEN")

# Google Ads credentials; anything left unset is read from system_settings
GOOGLE_ADS_DEVELOPER_TOKEN = os.getenv("GOOGLE_ADS_DEVELOPER_TOKEN")
GOOGLE_ADS_CLIENT_ID = os.getenv("GOOGLE_ADS_CLIENT_ID")
GOOGLE_ADS_CLIENT_SECRET = os.getenv("GOOGLE_ADS_CLIENT_SECRET")
GOOGLE_ADS_REFRESH_TOKEN = os.getenv("GOOGLE_ADS_REFRESH_TOKEN")
GOOGLE_ADS_LOGIN_CUSTOMER_ID = os.getenv("GOOGLE_ADS_LOGIN_CUSTOMER_ID")

CACHE_DURATION_HOURS = float(os.getenv("CACHE_DURATION_HOURS", "6"))
SYNC_WORKERS = int(os.getenv("SYNC_WORKERS", "1"))
