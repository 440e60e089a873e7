"""Message text for reminders and digests, one renderer per channel."""

from contest_scout.models import (
    ContestSummary,
    NotificationKind,
    NotificationPayload,
    PersistedContest,
)

_MAX_TEXT_LEN = 300

_PROVIDER_LABELS = {
    "codeforces": "Codeforces",
    "leetcode": "LeetCode",
    "codechef": "CodeChef",
    "atcoder": "AtCoder",
}

_DIGEST_LABELS = {
    NotificationKind.DAILY_DIGEST: "Today's",
    NotificationKind.WEEKLY_DIGEST: "This week's",
}


def _truncate(text: str, max_len: int = _MAX_TEXT_LEN) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len].rstrip() + "…"


def _escape_html(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def provider_label(summary: ContestSummary) -> str:
    return _PROVIDER_LABELS.get(summary.provider.value, summary.provider.value)


def format_hours(hours: float) -> str:
    if hours < 1:
        minutes = max(1, round(hours * 60))
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    whole = round(hours)
    return f"{whole} hour{'s' if whole != 1 else ''}"


def _start_label(summary: ContestSummary) -> str:
    return summary.start_time.strftime("%a %d %b %H:%M UTC")


# --------------------------------------------------------------------------- #
# Titles and plain messages (stored on the notification record)
# --------------------------------------------------------------------------- #


def reminder_title(contest: PersistedContest, hours: float) -> str:
    return _truncate(f"{contest.name} starts in {format_hours(hours)}", 200)


def reminder_message(summary: ContestSummary) -> str:
    return (
        f"{summary.name} on {provider_label(summary)} starts in "
        f"{format_hours(summary.hours_until_start)} ({_start_label(summary)})."
    )


def digest_title(kind: NotificationKind, count: int) -> str:
    label = _DIGEST_LABELS.get(kind, "Upcoming")
    return f"{label} contests: {count} upcoming"


def digest_message(summaries: list[ContestSummary]) -> str:
    return "\n".join(
        f"- {s.name} ({provider_label(s)}) in {format_hours(s.hours_until_start)}"
        for s in summaries
    )


# --------------------------------------------------------------------------- #
# Channel renderers
# --------------------------------------------------------------------------- #


def render_email_html(payload: NotificationPayload) -> str:
    rows = []
    for s in payload.contests:
        name = _escape_html(s.name)
        if s.website_url:
            name = f'<a href="{_escape_html(s.website_url)}">{name}</a>'
        rows.append(
            "<tr>"
            f"<td>{name}</td>"
            f"<td>{_escape_html(provider_label(s))}</td>"
            f"<td>{_escape_html(_start_label(s))}</td>"
            f"<td>in {format_hours(s.hours_until_start)}</td>"
            "</tr>"
        )
    table = (
        '<table cellpadding="6"><tr><th>Contest</th><th>Platform</th>'
        "<th>Starts</th><th></th></tr>" + "".join(rows) + "</table>"
        if rows
        else ""
    )
    return (
        f"<h2>{_escape_html(payload.title)}</h2>"
        f"<p>{_escape_html(payload.message).replace(chr(10), '<br>')}</p>"
        f"{table}"
        "<p style=\"color:#888\">You are receiving this because of your contest alert preferences.</p>"
    )


def render_whatsapp_text(payload: NotificationPayload) -> str:
    parts = [f"*{payload.title}*", ""]
    for s in payload.contests:
        line = f"• {s.name} ({provider_label(s)}) in {format_hours(s.hours_until_start)}"
        if s.website_url:
            line = f"{line}\n  {s.website_url}"
        parts.append(line)
    return _truncate("\n".join(parts), 1024)


def render_push(payload: NotificationPayload) -> tuple[str, str]:
    """(title, body) sized for mobile notification trays."""
    return _truncate(payload.title, 65), _truncate(payload.message, 180)
