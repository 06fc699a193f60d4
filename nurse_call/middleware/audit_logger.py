"""Patient-scoped write audit middleware: logs chat turns and request changes to JSONL."""

import json
import logging
import time
from pathlib import Path

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from nurse_call.config import settings

logger = logging.getLogger(__name__)

LOG_DIR = Path(settings.log_dir)
AUDIT_LOG_FILE = LOG_DIR / "audit_log.jsonl"


def _is_audited(path: str, method: str) -> bool:
    if method == "POST" and path in ("/chat", "/requests"):
        return True
    return method == "PATCH" and path.startswith("/requests/")


class AuditLogMiddleware(BaseHTTPMiddleware):
    """Logs who touched which patient's requests, and through which endpoint."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if not _is_audited(path, request.method):
            response: Response = await call_next(request)
            return response

        # Read and cache the request body for downstream handlers
        body_bytes = await request.body()
        body: dict = {}
        try:
            parsed = json.loads(body_bytes or b"{}")
            if isinstance(parsed, dict):
                body = parsed
        except json.JSONDecodeError:
            pass

        response = await call_next(request)

        patient_id = body.get("patient_id")
        is_update = request.method == "PATCH"
        # Chat turns only count when bound to a patient; request changes always do
        if patient_id or path != "/chat":
            entry = {
                "timestamp": time.time(),
                "patient_id": patient_id or "",
                "conversation_id": body.get("conversation_id") or "",
                "request_id": path.rsplit("/", 1)[-1] if is_update else "",
                "endpoint": path,
                "method": request.method,
                "status_code": response.status_code,
            }
            try:
                LOG_DIR.mkdir(parents=True, exist_ok=True)
                with open(AUDIT_LOG_FILE, "a") as f:
                    f.write(json.dumps(entry) + "\n")
            except OSError:
                logger.warning("Could not write audit log entry")

        return response
