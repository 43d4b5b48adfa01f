import math

from livequiz.errors import ValidationError
from livequiz.quiz_types import Participant

MAX_NAME_LENGTH = 20


def minimum_award(points: int, fraction: float = 0.1) -> int:
    """Smallest award for a correct answer, so a last-second answer still scores."""
    return max(1, math.floor(points * fraction))


def speed_weighted_score(correct: bool, remaining: float, time_limit: float, points: int,
                         minimum_fraction: float = 0.1) -> int:
    """max(minimumAward, floor(timeRemainingFraction * points)); 0 when wrong or empty."""
    if not correct or points <= 0:
        return 0
    fraction = 0.0 if time_limit <= 0 else max(0.0, min(1.0, remaining / time_limit))
    return max(minimum_award(points, minimum_fraction), math.floor(fraction * points))


def generate_option_labels(count: int) -> list[str]:
    """Generate ['A', 'B', 'C'...] for a given number of options."""
    return [chr(65 + i) for i in range(count)]


def parse_quiz_id(raw) -> int:
    try:
        quiz_id = int(str(raw).strip())
    except (TypeError, ValueError):
        raise ValidationError("Quiz code must be a number.") from None
    if quiz_id <= 0:
        raise ValidationError("Quiz code must be a positive number.")
    return quiz_id


def clean_display_name(name: str) -> str:
    """Trim and bound a viewer's display name. Raises on empty input."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Please enter your name")
    if len(name) > MAX_NAME_LENGTH:
        name = name[:MAX_NAME_LENGTH]
    return name


def _viewer_validate(v: dict) -> tuple[bool, str]:
    """Join-form check: fills v["quiz_id"] (int) and v["name"] (cleaned)."""
    missing = [k.replace("_", " ").title() for k in ("quiz_id", "name") if not str(v.get(k, "")).strip()]
    if missing:
        return False, f"Please fill: {', '.join(missing)}."
    try:
        v["quiz_id"] = parse_quiz_id(v["quiz_id"])
        v["name"] = clean_display_name(v["name"])
    except ValidationError as e:
        return False, e.message
    return True, ""


def _login_validate(v: dict) -> tuple[bool, str]:
    fields = ("username", "password", "email", "full_name") if v.get("signup") else ("username", "password")
    missing = [k.replace("_", " ").title() for k in fields if not str(v.get(k, "")).strip()]
    if missing:
        return False, f"Please fill: {', '.join(missing)}."
    if v.get("signup") and "@" not in v["email"]:
        return False, "Please enter a valid email address."
    return True, ""


def format_participant_row(p: Participant) -> list:
    """Row for the participants DataTable: [status, name, score]."""
    status = "🟢" if p.is_connected else "🔴"
    return [status, p.display_name, p.cumulative_score]


def rank_participants(participants: list[Participant]) -> list[Participant]:
    return sorted(participants, key=lambda p: (-p.cumulative_score, p.display_name.lower()))
