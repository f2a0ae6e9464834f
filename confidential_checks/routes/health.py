"""
Health check endpoints for the ledger gateway and the relayer.
"""

import time

from fastapi import APIRouter

from confidential_checks.dependencies import confidential_codec, record_store

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "confidential-background-checks"}


@router.get("/readyz")
async def readyz():
    """Readiness check: both upstream capabilities must answer."""
    checks = {}
    overall_ok = True

    for name, client in (("ledger", record_store), ("relayer", confidential_codec)):
        t0 = time.time()
        try:
            ok = await client.ping()
            checks[name] = {"ok": bool(ok), "latency_ms": round((time.time() - t0) * 1000, 1)}
            overall_ok = overall_ok and bool(ok)
        except Exception as e:
            checks[name] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
            overall_ok = False

    return {"overall_ok": overall_ok, "checks": checks}
