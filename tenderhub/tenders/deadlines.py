from __future__ import annotations

import logging
import os
import threading

from flask import Flask

from tenderhub.db import close_db, get_db


logger = logging.getLogger("tenderhub.tenders")


class DeadlineSweeper:
    """Periodically closes open tenders whose response deadline has passed."""

    def __init__(self, app: Flask) -> None:
        self.app = app
        self.interval_seconds = _int_config(app, "TENDER_AUTO_CLOSE_INTERVAL_SECONDS", 300, 10, 86_400)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run_loop, name="tender-deadline-sweeper", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.run_once()
            self._stop_event.wait(self.interval_seconds)

    def run_once(self) -> int:
        from tenderhub.tenders.workflow import get_workflow

        with self.app.app_context():
            try:
                closed = get_workflow().close_expired(get_db())
            except Exception:  # noqa: BLE001
                logger.exception("tender_deadline_sweep_failed")
                return 0
            finally:
                close_db()
        if closed:
            logger.info(
                "tender_deadline_sweep_closed",
                extra={"tender_ids": [tender["id"] for tender in closed]},
            )
        return len(closed)


def start_deadline_sweeper(app: Flask) -> DeadlineSweeper | None:
    if not _should_start_sweeper(app):
        return None
    sweeper = DeadlineSweeper(app)
    sweeper.start()
    app.extensions["deadline_sweeper"] = sweeper
    app.logger.info("Tender deadline sweeper started: interval=%ss", sweeper.interval_seconds)
    return sweeper


def _should_start_sweeper(app: Flask) -> bool:
    if not app.config.get("TENDER_AUTO_CLOSE_ENABLED", False):
        return False
    if app.config.get("TESTING"):
        return False
    if app.debug:
        run_main = os.environ.get("WERKZEUG_RUN_MAIN")
        if run_main and run_main.lower() != "true":
            return False
    return True


def _int_config(app: Flask, key: str, default: int, min_value: int, max_value: int) -> int:
    try:
        value = int(app.config.get(key, default))
    except (TypeError, ValueError):
        value = default
    return max(min_value, min(value, max_value))
