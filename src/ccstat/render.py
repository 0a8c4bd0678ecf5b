import math
from pathlib import Path

from rich.text import Text

from ccstat.config import Preferences
from ccstat.models import StatusSnapshot

# 256 colour palette entries
STYLES: "dict[str, str]" = {
    "dir": "color(117)",
    "git": "color(150)",
    "green": "color(158)",
    "yellow": "color(215)",
    "red": "color(203)",
}


def _round_half_up(value: "float") -> "int":
    return math.floor(value + 0.5)


def progress_bar(pct: "float", width: "int" = 20) -> "str":
    """
    renders pct as a fixed width bar. Values outside [0, 100] are
    clamped for display only.
    """
    clamped = max(0.0, min(100.0, pct))
    filled = _round_half_up(clamped / 100 * width)
    return "=" * filled + "-" * (width - filled)


def percentage(value: "float", limit: "float") -> "int":
    """
    returns value as a rounded percentage of limit. Not clamped,
    over-limit usage shows as more than 100.
    """
    if limit <= 0:
        return 0
    return _round_half_up(value * 100 / limit)


def threshold_style(pct: "float", warning: "float", critical: "float") -> "str":
    if pct >= critical:
        return "red"
    if pct >= warning:
        return "yellow"
    return "green"


def burn_rate_label(
    tokens_per_minute: "float",
    preferences: "Preferences",
) -> "tuple[str, str]":
    """
    returns (label, style) for the burn rate indicator.
    """
    if tokens_per_minute > preferences.burn_rate_high_threshold:
        return "🚨 (High)", "red"
    if tokens_per_minute > preferences.burn_rate_moderate_threshold:
        return "⚠️ (Moderate)", "yellow"
    return "🟢 (Normal)", "green"


def shorten_home(path: "str", home: "str | None" = None) -> "str":
    if home is None:
        home = str(Path.home())
    if home and (path == home or path.startswith(home.rstrip("/") + "/")):
        return "~" + path[len(home.rstrip("/")) :]
    return path


def render_status(
    snapshot: "StatusSnapshot",
    preferences: "Preferences",
    token_limit: "int",
    home: "str | None" = None,
) -> "Text":
    """
    builds the four line status block:

        📁 directory  🌿 branch
          ⏰ time left in the active block [elapsed bar]
          🧠 context tokens (pct) [bar]
          burn rate indicator | Used: pct | Projected: pct
    """
    text = Text()
    text.append(f"📁 {shorten_home(snapshot.cwd, home)}", style=STYLES["dir"])
    if snapshot.git_branch:
        text.append("  ")
        text.append(f"🌿 {snapshot.git_branch}", style=STYLES["git"])
    text.append("\n")

    text.append("  ")
    text.append_text(_time_line(snapshot, preferences, token_limit))
    text.append("\n  ")
    text.append_text(_context_line(snapshot, preferences))
    text.append("\n  ")
    text.append_text(_usage_line(snapshot, preferences, token_limit))
    return text


def _projected_pct(snapshot: "StatusSnapshot", token_limit: "int") -> "int":
    if snapshot.projection is None:
        return 0
    return percentage(snapshot.projection.total_tokens, token_limit)


def _time_line(
    snapshot: "StatusSnapshot",
    preferences: "Preferences",
    token_limit: "int",
) -> "Text":
    block = snapshot.active_block
    if block is None:
        return Text("⏰ N/A", style=STYLES["yellow"])

    remaining = max(0.0, (block.end_time - snapshot.now).total_seconds() / 60)
    whole_minutes = int(remaining)
    hours, minutes = divmod(whole_minutes, 60)

    # bar shows the fraction of the window already used
    elapsed_pct = 100 - remaining * 100 / preferences.window_minutes
    style = threshold_style(
        _projected_pct(snapshot, token_limit),
        preferences.time_warning_threshold,
        preferences.time_critical_threshold,
    )
    return Text(
        f"⏰ {hours}h {minutes}m left [{progress_bar(elapsed_pct)}]",
        style=STYLES[style],
    )


def _context_line(snapshot: "StatusSnapshot", preferences: "Preferences") -> "Text":
    session = snapshot.context_session
    if session is None:
        return Text("🧠 N/A", style=STYLES["green"])

    tokens = session.current_tokens
    pct = percentage(tokens, preferences.max_context_tokens)
    style = threshold_style(
        pct,
        preferences.context_warning_threshold,
        preferences.context_critical_threshold,
    )
    return Text(f"🧠 {tokens:,} ({pct}%) [{progress_bar(pct)}]", style=STYLES[style])


def _usage_line(
    snapshot: "StatusSnapshot",
    preferences: "Preferences",
    token_limit: "int",
) -> "Text":
    block = snapshot.active_block
    rate = snapshot.burn_rate

    tokens_per_minute = _round_half_up(rate.tokens_per_minute) if rate else 0
    indicator = rate.tokens_per_minute_for_indicator if rate else 0.0
    label, label_style = burn_rate_label(indicator, preferences)

    used_pct = percentage(block.token_counts.total, token_limit) if block else 0
    projected_pct = _projected_pct(snapshot, token_limit)

    used_style = threshold_style(
        used_pct,
        preferences.usage_warning_threshold,
        preferences.usage_critical_threshold,
    )
    projected_style = threshold_style(
        projected_pct,
        preferences.time_warning_threshold,
        preferences.time_critical_threshold,
    )

    line = Text(f"{tokens_per_minute:,} tokens/min ")
    line.append(label, style=STYLES[label_style])
    line.append(" | ")
    line.append(f"Used: {used_pct}%", style=STYLES[used_style])
    line.append(" | ")
    line.append(f"Projected: {projected_pct}%", style=STYLES[projected_style])
    return line
