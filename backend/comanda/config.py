import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()  # lee .env del cwd

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./comanda.db")

# -----------------------------
# Print agent (local)
# -----------------------------
PRINT_AGENT_URL = os.getenv("PRINT_AGENT_URL", "http://127.0.0.1:8182").rstrip("/")
PRINT_AGENT_CERT_PATH = os.getenv("PRINT_AGENT_CERT_PATH", "")
PRINT_AGENT_KEY_PATH = os.getenv("PRINT_AGENT_KEY_PATH", "")
PRINT_AGENT_ALGORITHM = os.getenv("PRINT_AGENT_ALGORITHM", "SHA512")
PRINT_AGENT_TIMEOUT = int(os.getenv("PRINT_AGENT_TIMEOUT", "15"))

# -----------------------------
# Print queue
# -----------------------------
QUEUE_POLL_INTERVAL = float(os.getenv("QUEUE_POLL_INTERVAL", "5"))
QUEUE_BATCH_SIZE = int(os.getenv("QUEUE_BATCH_SIZE", "10"))
QUEUE_NOTIFY_DELAY = float(os.getenv("QUEUE_NOTIFY_DELAY", "1.0"))
# 0 = reintento ilimitado
QUEUE_MAX_ATTEMPTS = int(os.getenv("QUEUE_MAX_ATTEMPTS", "5"))
QUEUE_CHANNEL = os.getenv("QUEUE_CHANNEL", "print:queue:new")
REDIS_URL = os.getenv("REDIS_URL", "")

# -----------------------------
# Client (local, per device)
# -----------------------------
COMANDA_HOME = Path(os.getenv("COMANDA_HOME", str(Path.home() / ".comanda")))
CLIENT_ID = os.getenv("CLIENT_ID", "")
PRINT_PRIMARY = os.getenv("PRINT_PRIMARY", "false").lower() in ("1", "true", "yes")
DECIMAL_SEPARATOR = os.getenv("DECIMAL_SEPARATOR", ".")
