import os

# Ollama
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://127.0.0.1:11434").rstrip("/")
LOCAL_PROVIDER_ID = "ollama"
LOCAL_PROVIDER_LABEL = "Ollama (local)"

# ---------- Tunables ----------
CONNECT_TIMEOUT    = float(os.getenv("OLLAMA_CONNECT_TIMEOUT", "5"))     # seconds
READ_TIMEOUT       = float(os.getenv("OLLAMA_READ_TIMEOUT", "120"))      # seconds between chunks, 0 = wait forever
DISCOVERY_RETRIES  = int(os.getenv("OLLAMA_DISCOVERY_RETRIES", "2"))
BACKOFF_FACTOR     = float(os.getenv("OLLAMA_BACKOFF", "0.3"))
POOL_MAXSIZE       = int(os.getenv("OLLAMA_POOL_MAXSIZE", "20"))

# Agent profiles (markdown files)
AGENTS_DIR = os.getenv("HARMONY_AGENTS_DIR", os.path.join(os.getcwd(), "agents"))

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("HARMONY_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]

LOG_LEVEL = os.getenv("HARMONY_LOG_LEVEL", "INFO").upper()
