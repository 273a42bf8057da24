import json
import time
import logging
from typing import Dict, Any, Optional, List
import requests

from comanda.config import PRINT_AGENT_URL, PRINT_AGENT_TIMEOUT, PRINT_AGENT_ALGORITHM
from comanda.core.security import canonical_request

logger = logging.getLogger(__name__)


class AgentError(RuntimeError):
    pass


class PrintAgentClient:
    """
    Cliente del Print Agent local.

    La sesión se abre con un handshake firmado: el agente entrega un
    challenge, el cliente responde con su certificado y la firma del
    challenge. Luego cada request lleva su propia firma (método, path,
    timestamp y digest del body). Certificado y firma se obtienen de hooks
    que se evalúan en el momento de usarlos.
    """

    def __init__(
        self,
        base_url: str = PRINT_AGENT_URL,
        timeout: int = PRINT_AGENT_TIMEOUT,
        algorithm: str = PRINT_AGENT_ALGORITHM,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.preferred_algorithm = algorithm.upper()
        self.http = session or requests.Session()
        self._certificate_provider = lambda: ""
        self._signature_provider = lambda payload, algorithm: ""
        self._token: Optional[str] = None
        self._algorithm: Optional[str] = None

    # -----------------------------
    # Hooks
    # -----------------------------
    def set_certificate_provider(self, provider):
        self._certificate_provider = provider

    def set_signature_provider(self, provider):
        self._signature_provider = provider

    @property
    def is_connected(self) -> bool:
        return self._token is not None

    @property
    def algorithm(self) -> Optional[str]:
        return self._algorithm

    # -----------------------------
    # Handshake
    # -----------------------------
    def connect(self) -> bool:
        if self._token:
            return True

        try:
            r = self.http.get(f"{self.base_url}/handshake", timeout=self.timeout)
            r.raise_for_status()
            info = r.json()
            supported = [a.upper() for a in info.get("algorithms", [])]
            if self.preferred_algorithm in supported:
                algorithm = self.preferred_algorithm
            elif supported:
                algorithm = supported[0]
            else:
                raise AgentError("Agent offered no signature algorithm")
            challenge = info["challenge"]

            payload = {
                "certificate": self._certificate_provider(),
                "algorithm": algorithm,
                "challenge": challenge,
                "signature": self._signature_provider(challenge, algorithm),
            }
            r = self.http.post(f"{self.base_url}/session", json=payload, timeout=self.timeout)
            r.raise_for_status()
            self._token = r.json()["token"]
            self._algorithm = algorithm
        except (requests.RequestException, AgentError, KeyError, ValueError) as e:
            logger.error("Print agent connection failed (%s): %s", self.base_url, e)
            self._token = None
            return False

        logger.info("Connected to print agent %s (%s)", self.base_url, self._algorithm)
        return True

    def disconnect(self):
        self._token = None
        self._algorithm = None

    # -----------------------------
    # Requests firmados
    # -----------------------------
    def _headers(self, method: str, path: str, body: bytes) -> Dict[str, str]:
        timestamp = str(int(time.time()))
        signature = self._signature_provider(
            canonical_request(method, path, timestamp, body), self._algorithm
        )
        return {
            "Authorization": f"Bearer {self._token}",
            "X-Timestamp": timestamp,
            "X-Signature": signature,
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        retry: bool = True,
    ) -> Any:
        body = json.dumps(payload, separators=(",", ":")).encode("utf-8") if payload is not None else b""
        try:
            r = self.http.request(
                method,
                f"{self.base_url}{path}",
                data=body or None,
                headers=self._headers(method, path, body),
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout):
            # agente caído: el próximo connect() hace handshake de nuevo
            self.disconnect()
            raise
        if r.status_code == 401:
            # sesión perdida (agente reiniciado): nuevo handshake y un reintento
            self.disconnect()
            if retry and self.connect():
                return self._request(method, path, payload, retry=False)
        r.raise_for_status()
        return r.json()

    # -----------------------------
    # Capacidades
    # -----------------------------
    def discover_printers(self) -> List[str]:
        if not self.connect():
            return []
        try:
            data = self._request("GET", "/printers")
        except (requests.RequestException, ValueError) as e:
            logger.error("Failed to get printers: %s", e)
            return []
        return [p["name"] if isinstance(p, dict) else str(p) for p in data]

    def default_printer(self) -> Optional[str]:
        if not self.connect():
            return None
        try:
            return self._request("GET", "/printers/default").get("name")
        except (requests.RequestException, ValueError):
            return None

    def submit(
        self,
        document: str,
        printer: str,
        *,
        fmt: str = "html",
        options: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Envía un documento al agente. Lanza AgentError si no se imprimió.
        """
        if not self.connect():
            raise AgentError("Print agent not connected")

        payload = {
            "printer": printer,
            "format": fmt,
            "data": document,
            "options": options or {},
        }
        try:
            return self._request("POST", "/print", payload)
        except requests.HTTPError as e:
            detail = getattr(e.response, "text", "") or str(e)
            raise AgentError(f"Agent rejected job for '{printer}': {detail}") from e
        except ValueError as e:
            # 2xx sin JSON válido
            raise AgentError(f"Invalid agent response for '{printer}': {e}") from e
        except requests.RequestException as e:
            raise AgentError(f"Agent unreachable: {e}") from e
