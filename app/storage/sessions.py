from __future__ import annotations

import secrets
import shutil
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from app.core.logging import configure_logging

logger = configure_logging()


class SessionState(str, Enum):
    created = "created"
    populating = "populating"
    streaming = "streaming"
    retired = "retired"


@dataclass
class Session:
    session_id: str
    output_dir: Path
    created_at: datetime
    state: SessionState = SessionState.created


class SessionStore:
    """
    مخزن الجلسات: مجلد مؤقت لكل طلب تحت جذر الإخراج.

    يتتبع الجلسات الحية ويحذف مجلداتها بعد انتهاء الإرسال، ويوفر مسحًا دوريًا
    لأي عنصر أقدم من مدة الاحتفاظ في حال تعطل الحذف المؤجل.
    """

    def __init__(self, outputs_root: Path, retention_seconds: float = 3600) -> None:
        self.outputs_root = Path(outputs_root)
        self.retention_seconds = retention_seconds
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

        self.outputs_root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _generate_id() -> str:
        return f"session_{int(time.time() * 1000)}_{secrets.token_hex(6)}"

    def create(self) -> Session:
        session_id = self._generate_id()
        session = Session(
            session_id=session_id,
            output_dir=self.outputs_root / session_id,
            created_at=datetime.utcnow(),
        )
        session.output_dir.mkdir(parents=True)
        with self._lock:
            self._sessions[session_id] = session
        logger.info("Session created: %s", session_id)
        return session

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def active(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def retire(self, session: Session) -> None:
        """حذف كل ملفات الجلسة؛ أخطاء الحذف تُسجَّل كتحذير ولا تُرفع."""
        with self._lock:
            self._sessions.pop(session.session_id, None)
            if session.state == SessionState.retired:
                return
            session.state = SessionState.retired

        _remove_paths([session.output_dir])
        logger.info("Session retired: %s", session.session_id)

    def schedule_retire(self, session: Session, delay: float) -> None:
        if delay <= 0:
            self.retire(session)
            return
        timer = threading.Timer(delay, self.retire, args=(session,))
        timer.daemon = True
        timer.start()

    def list_expired(self, now: Optional[float] = None) -> List[Path]:
        now = time.time() if now is None else now
        if not self.outputs_root.exists():
            return []

        expired: List[Path] = []
        for path in sorted(self.outputs_root.iterdir()):
            try:
                age = now - path.stat().st_mtime
            except FileNotFoundError:
                continue
            if age > self.retention_seconds:
                expired.append(path)
        return expired

    def sweep(self, now: Optional[float] = None) -> int:
        expired = self.list_expired(now)
        if not expired:
            return 0

        names = {path.name for path in expired}
        with self._lock:
            for session_id in [sid for sid in self._sessions if sid in names]:
                self._sessions[session_id].state = SessionState.retired
                self._sessions.pop(session_id)

        removed = _remove_paths(expired)
        logger.info("Sweep removed %s expired item(s)", removed)
        return removed


def _remove_paths(paths: Iterable[Path]) -> int:
    removed = 0
    for path in paths:
        try:
            if path.is_dir():
                shutil.rmtree(path)
                removed += 1
            elif path.exists():
                path.unlink()
                removed += 1
        except OSError as exc:
            logger.warning("Could not clean up %s: %s", path, exc)
    return removed
