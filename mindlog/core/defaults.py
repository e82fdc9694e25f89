"""Shared default constants for mindlog."""

# How often the poller wakes to look for due schedules.
DEFAULT_CHECK_INTERVAL_SECONDS: int = 60

# Upper bound on 14-day steps taken when a biweekly schedule catches up.
# 1000 cycles is roughly 38 years; more than that means the stored
# last_triggered_at is garbage, not that the app was closed for a while.
MAX_BIWEEKLY_CATCH_UP_CYCLES: int = 1000

BIWEEKLY_INTERVAL_DAYS: int = 14

# How long a statement waits on a locked SQLite database before failing.
DEFAULT_BUSY_TIMEOUT_SECONDS: float = 5.0

DEFAULT_DATABASE_URL: str = 'sqlite+aiosqlite:///mindlog.db'

# Assessment types seeded by the desktop app, keyed by assessment_type_id.
DEFAULT_SUBJECTS: dict[int, tuple[str, str]] = {
    1: ('PHQ9', 'Patient Health Questionnaire-9'),
    2: ('GAD7', 'Generalized Anxiety Disorder-7'),
    3: ('CESD', 'Center for Epidemiologic Studies Depression Scale'),
    4: ('OASIS', 'Overall Anxiety Severity and Impairment Scale'),
}
