# livequiz/common.py
# =====================================================================================
# Shared by both front-ends:
#   - the package logger (everything logs through logging.getLogger("livequiz"))
#   - configure_logging(): file logging, since Textual owns the terminal
#   - SessionContext: the credential / viewer identity object that is passed
#     explicitly to every service and surface. Nothing reads tokens from
#     ambient storage.
# =====================================================================================
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from livequiz.quiz_types import User, ViewerSession

logger = logging.getLogger("livequiz")


def configure_logging(role: str, log_dir: str | Path = "logs", debug: bool = False) -> Path:
    """Send all logging to logs/<role>.log and return the file path."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / f"{role}.log"

    # Root at INFO keeps Textual/urllib3 debug noise out of the file.
    logging.basicConfig(
        filename=path,
        level=logging.INFO,
        format=f"%(asctime)s %(levelname)s [{role.upper()}] %(message)s",
        filemode="w",
        force=True,
    )
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.info(f"{role} client starting up...")
    return path


@dataclass
class SessionContext:
    """Client-side state for one run of a front-end.

    Created empty, filled on login (host) or join (viewer), cleared on logout
    or leave.
    """
    token: Optional[str] = None
    user: Optional[User] = None
    viewer: Optional[ViewerSession] = None
    pending_question_count: int = 0
    # last display name used to join, offered again on the join form
    remembered_name: str = ""
    on_cleared: list = field(default_factory=list, repr=False)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def login(self, token: str, user: User) -> None:
        self.token = token
        self.user = user
        logger.info(f"Logged in as {user.username}")

    def clear_credentials(self) -> None:
        """Forced or voluntary logout."""
        had_token = self.token is not None
        self.token = None
        self.user = None
        self.pending_question_count = 0
        if had_token:
            logger.info("Credentials cleared.")
        for callback in list(self.on_cleared):
            callback()

    def join(self, viewer: ViewerSession) -> None:
        self.viewer = viewer
        self.remembered_name = viewer.name

    def leave(self) -> None:
        self.viewer = None

    def question_saved(self) -> None:
        """Count down the number of questions still to author."""
        if self.pending_question_count > 0:
            self.pending_question_count -= 1
