"""Rich console output and markdown transcript export."""

import logging
import re
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from roundtable.models import Message, Participant, Round, Session, Verdict

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

# Border colours cycled over AI participants in roster order
_COLOURS = ["cyan", "magenta", "green", "yellow", "blue", "red"]


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _colour_for(participant: Participant, session: Session) -> str:
    if participant.is_user:
        return "bold white"
    ai_ids = [p.id for p in session.participants if not p.is_user]
    return _COLOURS[ai_ids.index(participant.id) % len(_COLOURS)]


def print_session_header(session: Session, generator: str, judge: str) -> None:
    names = ", ".join(p.name for p in session.participants if not p.is_user)
    console.print(Rule("[bold cyan]Roundtable[/bold cyan]"))
    console.print(f"Topic: [italic]{escape(session.topic)}[/italic]")
    console.print(f"Participants: {escape(names)} + you ({len(session.participants)} total)")
    console.print(
        Text(f"Policy: {session.policy.value} | Generator: {generator} | Judge: {judge}", style="dim")
    )
    console.print(Text("Commands: /judge, /refresh, /quit", style="dim"))


def print_message(message: Message, session: Session) -> None:
    """Render one message as a panel titled with its author."""
    participant = next((p for p in session.participants if p.id == message.participant_id), None)
    if participant is None:
        title, style = escape(message.participant_id), "dim"
    elif participant.is_user:
        title, style = escape(participant.name), _colour_for(participant, session)
    else:
        role = participant.role.split(":")[0]
        title = f"{escape(participant.name)} [dim]({escape(role)})[/dim]"
        style = _colour_for(participant, session)
    console.print(
        Panel(
            Text(message.text),
            title=f"[bold]{title}[/bold]",
            title_align="left",
            subtitle=message.timestamp.astimezone().strftime("%H:%M:%S"),
            subtitle_align="right",
            border_style=style,
        )
    )


def print_thinking(participant: Participant) -> None:
    console.print(Text(f"{participant.name} is thinking...", style="italic dim"))


def print_round_summary(rnd: Round, session: Session) -> None:
    if not rnd.skipped:
        return
    names = {p.id: p.name for p in session.participants}
    skipped = ", ".join(names.get(pid, pid) for pid in rnd.skipped)
    console.print(Text(f"Round {rnd.number}: no response from {skipped}", style="yellow"))


def print_verdict(verdict: Verdict | None) -> None:
    """Print the judge's markdown verdict, or a notice when there is none."""
    console.print(Rule("[bold yellow]Judge's Verdict[/bold yellow]"))
    if verdict is None:
        console.print("[yellow]No evaluation available. Try /refresh.[/yellow]")
        return
    console.print(
        Text(
            f"Judged by: {verdict.judge} | Messages evaluated: {verdict.generated_at_log_length}",
            style="dim",
        )
    )
    console.print(Markdown(verdict.content))


def save_transcript(
    session: Session,
    messages: Sequence[Message],
    output_dir: Path,
    verdict: Verdict | None = None,
    slug_override: str | None = None,
) -> Path:
    """Save the discussion transcript as a markdown file.

    Args:
        session: The finished session (topic, roster, policy).
        messages: Log snapshot to export.
        output_dir: Directory to save the file in.
        verdict: Last judge verdict, appended when present.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the topic. Useful for topic files.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(session.topic)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    names = {p.id: p.name for p in session.participants}
    lines: list[str] = [
        f"# Roundtable Discussion: {session.topic[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Policy:** {session.policy.value}",
        f"**Messages:** {len(messages)}",
        "",
        "## Participants",
        "",
    ]
    for p in session.participants:
        lines.append(f"- **{p.name}** (`{p.id}`): {p.role}")
    lines += ["", "---", "", "## Transcript", ""]

    for m in messages:
        lines.append(f"**{names.get(m.participant_id, 'Unknown')}** "
                     f"*({m.timestamp.astimezone().strftime('%H:%M:%S')})*")
        lines.append("")
        lines.append(m.text)
        lines.append("")

    if verdict is not None:
        lines += [
            f"## Judge's Verdict (by {verdict.judge}, after {verdict.generated_at_log_length} messages)",
            "",
            verdict.content,
            "",
        ]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
