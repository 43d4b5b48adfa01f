# livequiz/session_log.py
# =============================================================================
# Participation log
#
# - One file per joined session under session_logs/
# - Filenames: YYYYMMDD_HHMMSS.session.log
# - Line format: [event-type] {JSON payload}
#
# Event types (viewer perspective):
#   [session-start]     : quiz id, display name, viewer service url
#   [question-received] : question as delivered by the session service
#   [answer-submitted]  : what we sent, the local award and the server total
#   [session-end]       : finished, left, or torn down
#
# The journal is write-only during play. load_history() reads one back so a
# viewer can see what they answered in an earlier session.
# =============================================================================

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from livequiz.common import logger
from livequiz.quiz_types import Question

LOG_DIR_NAME = "session_logs"
LOG_SUFFIX = ".session.log"

_EVENT_LINE_RE = re.compile(r"^\[(?P<event>[^\]]+)\]\s+(?P<payload>{.*})$")


class ParticipationLog:
    """Append-only journal for a single viewer session."""

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.log_dir = self.base_dir / LOG_DIR_NAME
        self.log_dir.mkdir(parents=True, exist_ok=True)

        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.path = self.log_dir / f"{ts}{LOG_SUFFIX}"

    def _write(self, event: str, payload: Dict[str, Any]) -> None:
        record = {"ts": datetime.now().isoformat(timespec="seconds"), **payload}
        line = f"[{event}] {json.dumps(record, ensure_ascii=False)}\n"
        try:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.warning(f"Could not write participation log {self.path}: {e}")

    # ---- events -----------------------------------------------------------

    def log_session_start(self, quiz_id: int, name: str, viewer_url: str) -> None:
        self._write("session-start", {"quiz_id": quiz_id, "name": name, "viewer_url": viewer_url})

    def log_question_received(self, q_index: int, question: Question) -> None:
        self._write("question-received", {
            "q_index": q_index,
            "question_id": question.id,
            "text": question.prompt,
            "options": question.options,
            "points": question.points,
            "time_limit": question.time_limit_seconds,
        })

    def log_answer_submitted(self, q_index: int, answer_index: Optional[int], answer_value: str,
                             awarded: int, total: Optional[int] = None) -> None:
        self._write("answer-submitted", {
            "q_index": q_index,
            "answer_index": answer_index,
            "answer_value": answer_value,
            "awarded": awarded,
            "total": total,
        })

    def log_session_end(self, reason: str, score: int, graceful: bool = True) -> None:
        self._write("session-end", {"reason": reason, "score": score, "graceful": graceful})


# =============================================================================
# Reading a journal back
# =============================================================================

@dataclass
class AnsweredQuestion:
    q_index: int
    question_id: Optional[str] = None
    text: str = ""
    options: List[str] = field(default_factory=list)
    answer_index: Optional[int] = None
    answer_value: str = ""
    awarded: int = 0


@dataclass
class ParticipationHistory:
    quiz_id: Optional[int] = None
    name: str = ""
    viewer_url: str = ""
    ended: bool = False
    end_reason: Optional[str] = None
    final_score: Optional[int] = None
    questions: Dict[int, AnsweredQuestion] = field(default_factory=dict)

    @property
    def total_awarded(self) -> int:
        return sum(q.awarded for q in self.questions.values())

    def unanswered(self) -> List[int]:
        """Questions received for which no option was chosen (timeouts included)."""
        return [i for i, q in sorted(self.questions.items()) if q.answer_index is None]


def _question(history: ParticipationHistory, q_index: int) -> AnsweredQuestion:
    if q_index not in history.questions:
        history.questions[q_index] = AnsweredQuestion(q_index=q_index)
    return history.questions[q_index]


def get_latest_log_path(base_dir: Optional[Path] = None) -> Optional[Path]:
    base = Path(base_dir) if base_dir is not None else Path.cwd()
    log_dir = base / LOG_DIR_NAME
    if not log_dir.exists():
        return None
    logs = sorted(log_dir.glob(f"*{LOG_SUFFIX}"))
    return logs[-1] if logs else None


def load_history(path: Optional[Path] = None, base_dir: Optional[Path] = None) -> Optional[ParticipationHistory]:
    """Rebuild a ParticipationHistory from a journal (latest one if no path).

    Malformed lines are skipped. Returns None when there is no journal.
    """
    if path is None:
        path = get_latest_log_path(base_dir=base_dir)
        if path is None:
            return None

    history = ParticipationHistory()
    with Path(path).open("r", encoding="utf-8") as f:
        for raw_line in f:
            m = _EVENT_LINE_RE.match(raw_line.strip())
            if not m:
                continue
            try:
                payload = json.loads(m.group("payload"))
            except json.JSONDecodeError:
                continue
            event = m.group("event")

            if event == "session-start":
                history.quiz_id = payload.get("quiz_id")
                history.name = payload.get("name", "")
                history.viewer_url = payload.get("viewer_url", "")

            elif event == "question-received":
                if payload.get("q_index") is None:
                    continue
                q = _question(history, payload["q_index"])
                q.question_id = payload.get("question_id")
                q.text = payload.get("text", "")
                q.options = payload.get("options") or []

            elif event == "answer-submitted":
                if payload.get("q_index") is None:
                    continue
                q = _question(history, payload["q_index"])
                q.answer_index = payload.get("answer_index")
                q.answer_value = payload.get("answer_value") or ""
                q.awarded = int(payload.get("awarded") or 0)

            elif event == "session-end":
                history.ended = True
                history.end_reason = payload.get("reason")
                history.final_score = payload.get("score")

    return history
