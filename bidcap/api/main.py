"""FastAPI main application."""
import logging
import secrets
from datetime import date, datetime, timezone
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from bidcap.calc.bidcap import UnknownHouseError, compute_bid_cap
from bidcap.calc.tables import PricingTables
from bidcap.config import config, Config
from bidcap.fetch.client import PageFetcher
from bidcap.fetch.houses import HOUSES, HouseConfig, find_house, load_houses
from bidcap.jobs.notifier import WebhookNotifier
from bidcap.jobs.reconciler import FeeReconciler
from bidcap.parse.models import BidCapRequest, BidCapResult, FeeAuditEntry, FeeRecord, FeeUpdate, rates_differ
from bidcap.store.fee_store import FeeStore, SupabaseFeeStore

logger = logging.getLogger(__name__)

app = FastAPI(title="Wine Bid-Cap API", version="0.1.0")

BASIC_AUTH = HTTPBasic(auto_error=False)
ADMIN_REALM = 'Basic realm="Admin Area"'


@lru_cache(maxsize=1)
def get_store() -> FeeStore:
    """Shared fee store (overridden in tests)."""
    return SupabaseFeeStore()


@lru_cache(maxsize=1)
def get_tables() -> PricingTables:
    """Pricing tables, loaded once per process."""
    if config.PRICING_TABLES_FILE:
        logger.info(f"Loading pricing tables from {config.PRICING_TABLES_FILE}")
        return PricingTables.from_json(config.PRICING_TABLES_FILE)
    return PricingTables()


@lru_cache(maxsize=1)
def get_houses() -> tuple[HouseConfig, ...]:
    """Configured houses (built-in list unless HOUSES_FILE is set)."""
    if config.HOUSES_FILE:
        return load_houses(config.HOUSES_FILE)
    return HOUSES


def verify_admin(credentials: Optional[HTTPBasicCredentials] = Depends(BASIC_AUTH)) -> str:
    """Check Basic credentials against ADMIN_USER / ADMIN_PASS."""
    expected_user = config.ADMIN_USER or ""
    expected_pass = config.ADMIN_PASS or ""
    ok = (
        credentials is not None
        and bool(expected_user)
        and bool(expected_pass)
        and secrets.compare_digest(credentials.username.encode(), expected_user.encode())
        and secrets.compare_digest(credentials.password.encode(), expected_pass.encode())
    )
    if not ok:
        raise HTTPException(
            status_code=401,
            detail="Authentication required.",
            headers={"WWW-Authenticate": ADMIN_REALM},
        )
    return credentials.username


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {error.get('msg')}" if loc else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are client errors (400), never partially applied."""
    return JSONResponse(status_code=400, content={"ok": False, "error": _validation_message(exc)})


@app.get("/health")
async def health():
    """Health check endpoint (no auth required)."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/fees", response_model=list[FeeRecord])
async def list_fees(store: FeeStore = Depends(get_store)):
    """All fee rows, ordered by house."""
    try:
        return await store.list_all()
    except Exception as e:
        logger.error(f"Failed to list fees: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})


@app.put("/admin/fees")
async def put_fee(
    update: FeeUpdate,
    store: FeeStore = Depends(get_store),
    _: str = Depends(verify_admin),
):
    """Manual fee edit; audited when the rate changes."""
    try:
        current = await store.get(update.house)
        record = FeeRecord(
            house=update.house,
            buyers_premium=update.buyers_premium,
            source_url=update.source_url,
            last_verified=update.last_verified or date.today(),
        )
        old_rate = current.buyers_premium if current else None
        if rates_differ(old_rate, update.buyers_premium):
            await store.upsert_with_audit(
                record,
                FeeAuditEntry(
                    house=update.house,
                    old_rate=old_rate,
                    new_rate=update.buyers_premium,
                    source_url=record.source_url,
                ),
                previous=current,
            )
        else:
            await store.upsert(record)
    except Exception as e:
        logger.error(f"Admin fee update failed for {update.house}: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e) or "error"})

    logger.info(f"Admin set {update.house} buyers_premium={update.buyers_premium}")
    return {"ok": True}


@app.post("/compute", response_model=BidCapResult)
async def compute(
    request: BidCapRequest,
    store: FeeStore = Depends(get_store),
    tables: PricingTables = Depends(get_tables),
    houses: tuple[HouseConfig, ...] = Depends(get_houses),
):
    """Bid cap for a lot, using the stored premium of the house."""
    try:
        fee = await store.get(request.auction_house)
        if fee is None:
            raise UnknownHouseError(request.auction_house)
        house = find_house(request.auction_house, houses)
        return compute_bid_cap(
            request,
            fee.buyers_premium,
            tables,
            premium_excludes_vat=house.premium_excludes_vat if house else False,
        )
    except ValueError as e:
        return JSONResponse(status_code=400, content={"ok": False, "error": str(e)})
    except Exception as e:
        logger.error(f"[/compute] error: {e}", exc_info=True)
        return JSONResponse(status_code=400, content={"ok": False, "error": str(e) or "Unknown error"})


@app.post("/admin/validate-fees")
async def validate_fees(
    store: FeeStore = Depends(get_store),
    houses: tuple[HouseConfig, ...] = Depends(get_houses),
    _: str = Depends(verify_admin),
):
    """Run the fee verifier now and return its report."""
    async with PageFetcher() as fetcher:
        reconciler = FeeReconciler(store, fetcher, houses, notifier=WebhookNotifier())
        report = await reconciler.run()
    return {"ok": not report.failed, "failures": report.failures, "lines": report.lines}


@app.get("/admin/whoami")
async def whoami(store: FeeStore = Depends(get_store), _: str = Depends(verify_admin)):
    """Which database the service talks to, and what it sees there."""
    url = config.SUPABASE_URL or "(missing)"
    try:
        fees = await store.list_all()
    except Exception as e:
        return JSONResponse(
            status_code=500,
            content={"supabaseUrl": url, "error": str(e) or "unknown"},
            headers={"Cache-Control": "no-store"},
        )
    return JSONResponse(
        content={"supabaseUrl": url, "fees": [f.model_dump(mode="json") for f in fees], "error": None},
        headers={"Cache-Control": "no-store"},
    )


if __name__ == "__main__":
    import uvicorn
    from bidcap.logging_conf import setup_logging

    setup_logging()
    Config.validate(require_admin=True)
    uvicorn.run(app, host="0.0.0.0", port=8000)
