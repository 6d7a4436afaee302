#!/usr/bin/env python3
"""
Configuration settings for the Judicial Process Monitor

Every value can be overridden with an environment variable of the same name.
"""

import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# === Elasticsearch Configuration ===
ES_HOST = os.getenv("ES_HOST", "http://localhost:9200")
ES_INDEX_PREFIX = os.getenv("ES_INDEX_PREFIX", "judicial_")
ES_REQUEST_TIMEOUT = int(os.getenv("ES_REQUEST_TIMEOUT", "10"))

# === Portal Configuration ===
PORTAL_BASE_URL = os.getenv("PORTAL_BASE_URL", "https://consultaprocesos.ramajudicial.gov.co")
PORTAL_API_URL = os.getenv("PORTAL_API_URL", "https://consultaprocesos.ramajudicial.gov.co:448/api")
PORTAL_TIMEOUT = int(os.getenv("PORTAL_TIMEOUT", "20"))
PORTAL_MAX_RETRIES = int(os.getenv("PORTAL_MAX_RETRIES", "2"))
PORTAL_RETRY_DELAY = int(os.getenv("PORTAL_RETRY_DELAY", "2"))

# === Identity Provider Configuration ===
IDENTITY_URL = os.getenv("IDENTITY_URL", "")  # e.g. https://<project>.supabase.co/auth/v1
IDENTITY_SERVICE_KEY = os.getenv("IDENTITY_SERVICE_KEY", "")
IDENTITY_TIMEOUT = int(os.getenv("IDENTITY_TIMEOUT", "10"))

# === Email Configuration ===
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASS = os.getenv("SMTP_PASS", "")
SMTP_TIMEOUT = int(os.getenv("SMTP_TIMEOUT", "15"))
EMAIL_FROM = os.getenv("EMAIL_FROM", "Procesos Judiciales <no-reply@procesos-judiciales.co>")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# === Monitoring Configuration ===
MONITORING_ENABLED = _env_bool("MONITORING_ENABLED", True)
MONITORING_INTERVAL = int(os.getenv("MONITORING_INTERVAL", "600"))  # 10 minutes between cycles
MONITORING_INITIAL_DELAY = int(os.getenv("MONITORING_INITIAL_DELAY", "60"))
FETCH_WORKERS = int(os.getenv("FETCH_WORKERS", "4"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "20"))  # Maximum number of connection retry attempts
RETRY_DELAY = int(os.getenv("RETRY_DELAY", "30"))  # Initial delay between retries in seconds (will increase exponentially)

# === API Configuration ===
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8006"))
API_TITLE = "Judicial Process Monitor API"
API_DESCRIPTION = "Monitors favorite judicial processes and notifies users about changes"
API_VERSION = "1.0.0"

# === Logging Configuration ===
LOG_FILE = os.getenv("LOG_FILE", "process_monitor.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
