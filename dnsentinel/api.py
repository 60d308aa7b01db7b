"""
dnsentinel/api.py
─────────────────────────────────────────────────────────────────────────────
DNS Sentinel — Dual-mode API layer

TWO USAGE MODES:
  1. Importable module:
         from dnsentinel.api import DnsSentinelAPI
         api = DnsSentinelAPI(db_path=Path("dnsentinel.db"))
         windows = api.get_windows(severity="CRITICAL")

  2. FastAPI HTTP server:
         python -m dnsentinel.api                   # default: port 8766
         python -m dnsentinel.api --port 9000
         uvicorn dnsentinel.api:app --port 8766

ENDPOINTS:
  POST /scan                   — parse CSV → analyze → export → return summary
  POST /analyze                — classify inline events, nothing stored
  GET  /windows                — classified windows with optional filters
  GET  /windows/{time_window}  — single window ("2025-09-13 10:08", URL-encoded)
  GET  /meta                   — last run metadata
  GET  /health                 — server status

CORS: localhost-only (127.0.0.1 / ::1). Not exposed to network by default.

SECURITY NOTES:
  - No authentication (localhost-only, single-user assumed)
  - SQL queries use parameterized statements only
  - Scan endpoint validates the CSV path before running the pipeline
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from dnsentinel import __version__
from dnsentinel.config import DEFAULT_THRESHOLDS, Thresholds

logger = logging.getLogger(__name__)

JSON_FIELDS = (
    "devices", "wa_contributions", "fb_contributions", "dating_apps",
    "anonymous_platforms", "alternative_messaging", "video_calling",
    "social_messaging", "categories",
)

PLATFORM_FILTERS = {
    "whatsapp": "wa_score > 1",
    "facebook": "fb_score > 1",
}


# ═══════════════════════════════════════════════════════════════════════════
# IMPORTABLE CLASS
# ═══════════════════════════════════════════════════════════════════════════

class DnsSentinelAPI:
    """
    Pure-Python API wrapper around dnsentinel.db.
    No HTTP layer required — import and call directly.

    Usage:
        api = DnsSentinelAPI(db_path=Path("dnsentinel.db"))
        windows = api.get_windows(platform="whatsapp", limit=50)
        window  = api.get_window("2025-09-13 10:08")
        meta    = api.get_meta()
        summary = api.run_scan(csv_path=Path("logs/"))
    """

    def __init__(self, db_path: Path = Path("dnsentinel.db"), thresholds: Thresholds = DEFAULT_THRESHOLDS):
        self.db_path = Path(db_path)
        self.thresholds = thresholds

    # ── INTERNAL ──────────────────────────────────────────────────────────

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _db_exists(self) -> bool:
        return self.db_path.exists()

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
        d = {k: row[k] for k in row.keys()}
        for field in JSON_FIELDS:
            if field in d and d[field] is not None:
                try:
                    d[field] = json.loads(d[field])
                except (json.JSONDecodeError, TypeError):
                    logger.warning(f"Unreadable JSON in column {field} for {d.get('time_window')}")
        return d

    # ── QUERY: WINDOWS ────────────────────────────────────────────────────

    def get_windows(
        self,
        platform:     Optional[str] = None,
        severity:     Optional[str] = None,
        masking_only: bool          = False,
        limit:        int           = 100,
        offset:       int           = 0,
    ) -> List[Dict[str, Any]]:
        """
        Return classified windows, oldest first.

        Args:
            platform:     "whatsapp" or "facebook" — windows with real activity there
            severity:     "CRITICAL", "HIGH" or "MEDIUM"
            masking_only: only windows flagged for Reels masking
            limit:        max rows returned (max enforced: 1000)
            offset:       pagination offset
        """
        if platform and platform.lower() not in PLATFORM_FILTERS:
            raise ValueError(f"Unknown platform: {platform}")
        if not self._db_exists():
            return []

        limit = min(int(limit), 1000)
        offset = max(int(offset), 0)

        sql = "SELECT * FROM window_results WHERE 1=1"
        params: list = []

        if platform:
            sql += f" AND {PLATFORM_FILTERS[platform.lower()]}"
        if severity:
            sql += " AND severity = ?"
            params.append(severity.upper())
        if masking_only:
            sql += " AND is_masking = 1"

        sql += " ORDER BY window_start ASC LIMIT ? OFFSET ?"
        params += [limit, offset]

        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_dict(r) for r in rows]

    def get_window(self, time_window: str) -> Optional[Dict[str, Any]]:
        """Return a single window by key, or None if not found."""
        if not self._db_exists():
            return None
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM window_results WHERE time_window = ?",
                (time_window,)
            ).fetchone()
        return self._row_to_dict(row) if row else None

    # ── QUERY: META ───────────────────────────────────────────────────────

    def get_meta(self) -> Optional[Dict[str, Any]]:
        """Return the most recent run metadata row."""
        if not self._db_exists():
            return None
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM dnsentinel_meta ORDER BY id DESC LIMIT 1"
            ).fetchone()
        return dict(row) if row else None

    # ── SCAN: FULL PIPELINE ───────────────────────────────────────────────

    def run_scan(
        self,
        csv_path:    Path,
        deduplicate: bool = True,
        run_label:   str  = "",
    ) -> Dict[str, Any]:
        """
        Run the full pipeline: parse CSV → classify windows → export to DB.
        csv_path may be a single CSV file or a directory of them.
        Returns a summary dict with counts.
        """
        csv_path = Path(csv_path).resolve()
        if not csv_path.exists():
            raise ValueError(f"csv_path does not exist: {csv_path}")
        if csv_path.is_file() and csv_path.suffix.lower() != ".csv":
            raise ValueError(f"csv_path is not a .csv file: {csv_path}")

        # Deferred to keep `import dnsentinel.api` light
        from dnsentinel.detectors.activity_detector import run_full_analysis
        from dnsentinel.exporters.sqlite_exporter import export
        from dnsentinel.parsers.csv_parser import (
            deduplicate_events,
            drop_future_events,
            parse_csv_directory,
            parse_csv_file,
        )
        from dnsentinel.report import severity_for

        logger.info(f"Scan started | csv_path={csv_path} | db={self.db_path}")
        try:
            if csv_path.is_dir():
                events = parse_csv_directory(csv_path)
            else:
                events = parse_csv_file(csv_path)
            events = drop_future_events(events)
            if deduplicate:
                events = deduplicate_events(events)

            results = run_full_analysis(events, thresholds=self.thresholds)
            export(
                db_path   = self.db_path,
                events    = events,
                results   = results,
                run_label = run_label or "api-scan",
            )
        except Exception as exc:
            logger.error(f"Scan failed: {exc}", exc_info=True)
            raise

        summary = {
            "status":          "ok",
            "events_parsed":   len(events),
            "windows":         len(results),
            "flagged_windows": sum(1 for r in results if severity_for(r) is not None),
            "masking_windows": sum(1 for r in results if r.masking.is_masking),
            "db_path":         str(self.db_path),
        }
        logger.info(f"Scan complete: {summary}")
        return summary

    # ── ANALYZE: INLINE EVENTS ────────────────────────────────────────────

    def analyze_events(self, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Classify events supplied as dicts (same keys as the CSV columns).
        Nothing is written to the database.
        """
        from dnsentinel.detectors.activity_detector import run_full_analysis
        from dnsentinel.parsers.csv_parser import rows_to_events
        from dnsentinel.report import window_result_to_dict

        events = rows_to_events(rows, source_file="api")
        if rows and not events:
            raise ValueError("No usable events: each needs a domain and an ISO-8601 timestamp")

        results = run_full_analysis(events, thresholds=self.thresholds)
        return {
            "event_count": len(events),
            "window_count": len(results),
            "windows": [window_result_to_dict(r) for r in results],
        }


# ═══════════════════════════════════════════════════════════════════════════
# FASTAPI HTTP APP
# ═══════════════════════════════════════════════════════════════════════════

class ScanRequest(BaseModel):
    csv_path:     Optional[str] = None  # uses config csv_dir if empty
    deduplicate:  bool = True
    run_label:    str = ""
    db_path:      Optional[str] = None  # override db path for this scan


def _build_app(db_path: Path = Path("dnsentinel.db"), thresholds: Thresholds = DEFAULT_THRESHOLDS) -> FastAPI:
    """Build and return the FastAPI application instance."""
    _api = DnsSentinelAPI(db_path=db_path, thresholds=thresholds)

    _app = FastAPI(
        title       = "DNS Sentinel API",
        description = "Offline DNS log communication-activity analyzer — local API",
        version     = __version__,
        docs_url    = "/docs",
        redoc_url   = None,
    )

    _app.add_middleware(
        CORSMiddleware,
        allow_origins     = [
            "http://localhost",
            "http://localhost:8766",
            "http://127.0.0.1",
            "http://127.0.0.1:8766",
            "null",   # file:// origin
        ],
        allow_methods     = ["GET", "POST", "OPTIONS"],
        allow_headers     = ["Content-Type"],
        allow_credentials = False,
    )

    # ── ENDPOINTS ───────────────────────────────────────────────────────

    @_app.post("/scan", summary="Run full analysis pipeline")
    def scan(req: ScanRequest):
        """
        Parse CSV logs, classify every minute window, write dnsentinel.db.
        Labels are probabilistic indicators, not proof of communication.
        """
        csv_path = req.csv_path
        if not csv_path:
            from dnsentinel.config import load_config
            csv_path = load_config(Path.cwd()).get("csv_dir")
            if not csv_path:
                raise HTTPException(status_code=400, detail="csv_path required (or set csv_dir in config).")
        scan_api = _api
        if req.db_path:
            scan_api = DnsSentinelAPI(db_path=Path(req.db_path), thresholds=_api.thresholds)

        try:
            result = scan_api.run_scan(
                csv_path    = Path(csv_path),
                deduplicate = req.deduplicate,
                run_label   = req.run_label,
            )
            return JSONResponse(content=result, status_code=200)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except Exception as exc:
            logger.error(f"Scan endpoint error: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Scan failed: {exc}")

    @_app.post("/analyze", summary="Classify inline events")
    def analyze(events: List[Dict[str, Any]] = Body(..., embed=True)):
        """
        Body: {"events": [{"timestamp": "...", "domain": "...", ...}, ...]}
        Returns per-window classifications. Nothing is stored.
        """
        try:
            return _api.analyze_events(events)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    @_app.get("/windows", summary="List classified windows")
    def get_windows(
        platform:     Optional[str] = Query(None, description="Filter: whatsapp, facebook"),
        severity:     Optional[str] = Query(None, description="Filter: CRITICAL, HIGH, MEDIUM"),
        masking_only: bool          = Query(False),
        limit:        int           = Query(100, ge=1, le=1000),
        offset:       int           = Query(0,   ge=0),
    ):
        try:
            data = _api.get_windows(
                platform=platform, severity=severity, masking_only=masking_only,
                limit=limit, offset=offset,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return {"count": len(data), "windows": data}

    @_app.get("/windows/{time_window}", summary="Get single window")
    def get_window(time_window: str):
        data = _api.get_window(time_window)
        if data is None:
            raise HTTPException(status_code=404, detail=f"Window not found: {time_window}")
        return data

    @_app.get("/meta", summary="Last run metadata")
    def get_meta():
        data = _api.get_meta()
        if data is None:
            raise HTTPException(
                status_code=404,
                detail="No scan metadata found — run a scan first."
            )
        return data

    @_app.get("/health", summary="Health check")
    def health():
        return {
            "status":    "ok",
            "db_exists": _api.db_path.exists(),
            "db_path":   str(_api.db_path),
            "version":   __version__,
        }

    return _app


# Module-level app instance, used by uvicorn dnsentinel.api:app
app = _build_app()


# ═══════════════════════════════════════════════════════════════════════════
# CLI ENTRYPOINT: python -m dnsentinel.api
# ═══════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(
        prog        = "dnsentinel.api",
        description = "DNS Sentinel API Server (localhost only)",
    )
    parser.add_argument("--port",    type=int, default=8766,
                        help="Port to bind (default: 8766)")
    parser.add_argument("--db",      type=str, default="dnsentinel.db",
                        help="Path to dnsentinel.db (default: dnsentinel.db)")
    parser.add_argument("--host",    type=str, default="127.0.0.1",
                        help="Host to bind — DO NOT change to 0.0.0.0 on shared networks")
    args = parser.parse_args()

    logging.basicConfig(
        level   = logging.INFO,
        format  = '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt = '%H:%M:%S',
    )

    server_app = _build_app(db_path=Path(args.db))
    print(f"DNS Sentinel API v{__version__} — http://{args.host}:{args.port}  (db: {args.db})")
    uvicorn.run(
        server_app,
        host      = args.host,
        port      = args.port,
        log_level = "info",
    )
