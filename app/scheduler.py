"""Background scheduler — periodic mailbox ingestion via APScheduler.

Jobs:
  - channel_poll: every poll_interval_minutes — polls each connected
    supplier's Gmail inbox and turns partner emails into draft orders

Each job opens its own SessionLocal() and closes it when done. One supplier's
failure is logged and never stops the others.
"""

import logging
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .http_client import http

log = logging.getLogger(__name__)

scheduler = AsyncIOScheduler(timezone="UTC")


def _utc(dt):
    """Make a naive datetime UTC-aware (no-op if already aware)."""
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


# ── Token Management ────────────────────────────────────────────────────


async def get_valid_token(party, db) -> str | None:
    """Get a valid Gmail access token for a supplier, refreshing if near expiry.

    Returns the access token, or None when there is no refresh token or the
    refresh fails.
    """
    if party.gmail_access_token and party.gmail_token_expires_at:
        if datetime.now(timezone.utc) < _utc(party.gmail_token_expires_at) - timedelta(minutes=5):
            return party.gmail_access_token

    return await refresh_gmail_token(party, db)


async def refresh_gmail_token(party, db) -> str | None:
    """Refresh one supplier's Google token. Returns the new access token or None."""
    from .config import settings

    if not party.gmail_refresh_token:
        return None

    try:
        r = await http.post(
            settings.google_token_url,
            data={
                "client_id": settings.google_client_id,
                "client_secret": settings.google_client_secret,
                "refresh_token": party.gmail_refresh_token,
                "grant_type": "refresh_token",
            },
            timeout=15,
        )
    except Exception as e:
        log.warning(f"Token refresh error for {party.email}: {e}")
        return None

    if r.status_code != 200:
        log.warning(f"Token refresh failed for {party.email}: {r.status_code} — {r.text[:200]}")
        return None

    tokens = r.json()
    access_token = tokens.get("access_token")
    if not access_token:
        log.warning(f"Token refresh for {party.email} returned no access_token")
        return None

    party.gmail_access_token = access_token
    party.gmail_token_expires_at = datetime.now(timezone.utc) + timedelta(
        seconds=int(tokens.get("expires_in", 3600))
    )
    if tokens.get("refresh_token"):
        party.gmail_refresh_token = tokens["refresh_token"]
    db.commit()
    log.info(f"Gmail token refreshed for {party.email}")
    return access_token


# ── Scheduler setup ─────────────────────────────────────────────────────


def configure_scheduler():
    """Register jobs according to current settings. Call once on startup."""
    from .config import settings

    if settings.channel_polling_enabled:
        scheduler.add_job(
            _job_channel_poll,
            IntervalTrigger(minutes=settings.poll_interval_minutes),
            id="channel_poll",
            name="Gmail order ingestion",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        log.info(f"Channel polling every {settings.poll_interval_minutes} min")
    else:
        log.info("Channel polling disabled")


# ── Jobs ────────────────────────────────────────────────────────────────


async def _job_channel_poll():
    """Poll every connected supplier's mailbox once."""
    from .database import SessionLocal
    from .models import Party
    from .services.channel_poller import poll_channel
    from .utils.gmail_client import GmailClient

    db = SessionLocal()
    try:
        suppliers = (
            db.query(Party)
            .filter(
                Party.is_supplier.is_(True),
                Party.is_active.is_(True),
                Party.gmail_refresh_token.isnot(None),
            )
            .order_by(Party.id)
            .all()
        )
        if not suppliers:
            log.debug("Channel poll: no suppliers with mail credentials")
            return

        for supplier in suppliers:
            try:
                token = await get_valid_token(supplier, db)
                if not token:
                    log.warning(f"Skipping inbox poll for {supplier.email} — no valid token")
                    continue
                await poll_channel(db, supplier, GmailClient(token))
            except Exception as e:
                log.error(f"Inbox poll failed for {supplier.email}: {e}")
                db.rollback()
    finally:
        db.close()
