import os
from dotenv import load_dotenv

load_dotenv()  # lee .env del cwd

AGENT_ID = os.getenv("AGENT_ID", "agent-unknown")
AGENT_NAME = os.getenv("AGENT_NAME", AGENT_ID)
AGENT_HOST = os.getenv("AGENT_HOST", "127.0.0.1")
AGENT_PORT = int(os.getenv("AGENT_PORT", "8182"))

# firma de los tokens de sesión emitidos tras el handshake
AGENT_SECRET = os.getenv("AGENT_SECRET", "CAMBIA_ESTA_CLAVE_LARGA_Y_SEGURA")
SESSION_TTL_MINUTES = int(os.getenv("SESSION_TTL_MINUTES", str(60 * 12)))
CHALLENGE_TTL_SECONDS = int(os.getenv("CHALLENGE_TTL_SECONDS", "60"))
SIGNATURE_MAX_SKEW = int(os.getenv("SIGNATURE_MAX_SKEW", "300"))

# certificados PEM de clientes confiables
TRUSTED_CERTS_DIR = os.getenv("TRUSTED_CERTS_DIR", "./trusted")
# modo desarrollo: acepta certificado y firmas vacías
ALLOW_UNSIGNED = os.getenv("ALLOW_UNSIGNED", "false").lower() in ("1", "true", "yes")

AUDIT_LOG_PATH = os.getenv("AUDIT_LOG_PATH", "./logs/audit.jsonl")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

RASTER_DPI = int(os.getenv("RASTER_DPI", "203"))
FONT_PATH = os.getenv("FONT_PATH", "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf")
FONT_BOLD_PATH = os.getenv("FONT_BOLD_PATH", "/usr/share/fonts/truetype/dejavu/DejaVuSansMono-Bold.ttf")
