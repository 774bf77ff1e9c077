from __future__ import annotations

import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, TextIO


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truncate(text: str, *, limit: int) -> str:
    s = str(text or "")
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


class _Sink:
    """A shared, lock-guarded text target for one or more bound loggers."""

    def __init__(self, fp: TextIO | None, *, owned: bool) -> None:
        self._fp: TextIO | None = fp
        self._owned = owned
        self._lock = Lock()

    def write_line(self, line: str) -> None:
        with self._lock:
            if self._fp is None:
                return
            self._fp.write(line + "\n")
            self._fp.flush()

    def close(self) -> None:
        with self._lock:
            if self._fp is None:
                return
            try:
                self._fp.flush()
            finally:
                if self._owned:
                    self._fp.close()
                self._fp = None


class RunLogger:
    """
    JSONL event logger for scrape runs.

    Every record is a single JSON object: ts, level, event, session_id, any
    bound context (profile_id, job_id, ...) and an optional data payload.
    """

    def __init__(
        self,
        sink: _Sink,
        *,
        session_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self._sink = sink
        self._session_id = (session_id or "").strip() or uuid.uuid4().hex
        self._context: dict[str, Any] = dict(context or {})

    @classmethod
    def open(
        cls,
        path: str | Path,
        *,
        overwrite: bool = True,
        session_id: str | None = None,
    ) -> "RunLogger":
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        fp = p.open("w" if overwrite else "a", encoding="utf-8", newline="\n")
        return cls(_Sink(fp, owned=True), session_id=session_id)

    @classmethod
    def to_stream(cls, stream: TextIO, *, session_id: str | None = None) -> "RunLogger":
        return cls(_Sink(stream, owned=False), session_id=session_id)

    @classmethod
    def null(cls) -> "RunLogger":
        return cls(_Sink(None, owned=False))

    def close(self) -> None:
        self._sink.close()

    def __enter__(self) -> "RunLogger":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    @property
    def session_id(self) -> str:
        return self._session_id

    def bind(self, **context: Any) -> "RunLogger":
        """Return a logger that shares this sink and adds context to every record."""
        merged = dict(self._context)
        merged.update({k: v for k, v in context.items() if v is not None})
        return RunLogger(self._sink, session_id=self._session_id, context=merged)

    def info(self, event: str, **data: Any) -> None:
        self.log("INFO", event, **data)

    def warning(self, event: str, **data: Any) -> None:
        self.log("WARN", event, **data)

    def error(self, event: str, **data: Any) -> None:
        self.log("ERROR", event, **data)

    def exception(self, event: str, *, exc: BaseException, **data: Any) -> None:
        err = {
            "type": type(exc).__name__,
            "message": _truncate(str(exc), limit=2000),
            "traceback": _truncate(
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                limit=12000,
            ),
        }
        self.log("ERROR", event, error=err, **data)

    def log(self, level: str, event: str, **data: Any) -> None:
        record: dict[str, Any] = {
            "ts": _utc_now_iso(),
            "level": (level or "").strip().upper() or "INFO",
            "event": (event or "").strip() or "event",
            "session_id": self._session_id,
        }
        record.update(self._context)
        if data:
            record["data"] = data

        self._sink.write_line(
            json.dumps(
                record,
                ensure_ascii=False,
                sort_keys=True,
                separators=(",", ":"),
                default=str,
            )
        )
