import os
from dotenv import load_dotenv

load_dotenv(dotenv_path=".env")

# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
SUBSCRIPTIONS_TABLE = os.getenv("SUBSCRIPTIONS_TABLE", "subscriptions")

# Billing
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "ETB")
RENEWAL_WINDOW_DAYS = int(os.getenv("RENEWAL_WINDOW_DAYS", "30"))

# Auth
SUPER_ADMIN_ROLE = os.getenv("SUPER_ADMIN_ROLE", "SUPER_ADMIN")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Scheduled jobs
CRON_SECRET = os.getenv("CRON_SECRET")
