"""Click CLI — session setup, interactive discussion loop, judge commands."""

import asyncio
import logging
import sys
import threading
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from config.config_loader import AppConfig, load_config, parse_policy
from roundtable.conversation import ConversationLog
from roundtable.healthcheck import run_health_checks
from roundtable.judge import JudgeEvaluator
from roundtable.models import Message, OrchestratorState, RoundPhase, Session, TurnPolicy
from roundtable.orchestrator import RoundInProgressError, TurnOrchestrator
from roundtable.output import (
    print_message,
    print_round_summary,
    print_session_header,
    print_thinking,
    print_verdict,
    save_transcript,
)
from roundtable.providers.anthropic import AnthropicProvider
from roundtable.providers.base import AIProvider
from roundtable.providers.gemini import GeminiProvider
from roundtable.providers.openai_provider import OpenAIProvider
from roundtable.registry import ConfigurationError, create_session
from roundtable.speech import AudioRecorder, GeminiSpeechSynthesizer, SpeechError
from roundtable.topics import parse_topic_file, suggest_topic

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "gemini": GeminiProvider,
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
}

QUIT_COMMANDS = {"/quit", "/exit"}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build all available providers. Returns dict keyed by configured name."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        if model_cfg.sdk not in PROVIDER_CLASSES:
            logging.warning("Provider '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = PROVIDER_CLASSES[model_cfg.sdk](model_cfg)
        except Exception as exc:
            logging.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _pick_provider(
    all_providers: dict[str, AIProvider],
    preferred: str | None,
    role: str,
) -> AIProvider | None:
    """Return the preferred provider, else the first available one."""
    if preferred and preferred in all_providers:
        return all_providers[preferred]
    if not all_providers:
        return None
    fallback = next(iter(all_providers.values()))
    if preferred:
        logger.warning("%s provider '%s' unavailable, using '%s'", role, preferred, fallback.name())
    return fallback


def _resolve_setup(
    config: AppConfig,
    meta: dict,
    participants_cli: int | None,
    policy_cli: str | None,
) -> tuple[int, TurnPolicy]:
    """Precedence: CLI flag > topic file frontmatter > config default."""
    count = (
        participants_cli if participants_cli is not None
        else int(meta["participants"]) if "participants" in meta
        else config.defaults.participants
    )
    policy = (
        parse_policy(policy_cli) if policy_cli is not None
        else parse_policy(str(meta["policy"])) if "policy" in meta
        else config.defaults.policy
    )
    return count, policy


def _check_and_filter_providers(all_providers: dict[str, AIProvider]) -> dict[str, AIProvider]:
    """Run health checks, print results, and ask user what to do on failures.

    Returns the filtered dict of working providers. Exits if the user
    declines to continue or no providers pass.
    """
    console.print("\n[bold]Checking providers...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(run_health_checks(all_providers))

    failed_names: list[str] = []
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {escape(short_err)}")
            failed_names.append(name)

    if not failed_names:
        console.print()
        return all_providers

    working = {n: p for n, p in all_providers.items() if n not in failed_names}

    if not working:
        console.print("\n[bold red]Error:[/bold red] No providers passed the health check.")
        sys.exit(1)

    console.print(
        f"\n[yellow]{len(failed_names)} provider(s) failed:[/yellow] {', '.join(failed_names)}"
    )
    if not click.confirm("Continue with working providers only?", default=True):
        sys.exit(0)

    console.print()
    return working


def _build_recorder(config: AppConfig, audio_dir: str | None) -> AudioRecorder | None:
    if not audio_dir:
        return None
    if config.speech is None:
        console.print("[yellow]No speech settings configured, audio disabled.[/yellow]")
        return None
    try:
        synthesizer = GeminiSpeechSynthesizer(config.speech)
    except SpeechError as exc:
        console.print(f"[yellow]Audio disabled:[/yellow] {escape(str(exc))}")
        return None
    return AudioRecorder(synthesizer, Path(audio_dir), sample_rate=config.speech.sample_rate)


async def _read_line(prompt: str) -> str:
    """Read one line of user input without blocking the event loop.

    The read runs on a daemon thread, so an interrupt that cancels the
    awaiting task does not leave interpreter shutdown waiting on the prompt.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def deliver(result: str | None, error: BaseException | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def read() -> None:
        line: str | None = None
        error: BaseException | None = None
        try:
            line = console.input(prompt)
        except BaseException as exc:  # EOFError and KeyboardInterrupt surface in the awaiting task
            error = exc
        try:
            loop.call_soon_threadsafe(deliver, line, error)
        except RuntimeError:
            # Loop already closed; the session ended while the prompt was open.
            pass

    threading.Thread(target=read, name="roundtable-input", daemon=True).start()
    return await future


async def _discussion_loop(
    orchestrator: TurnOrchestrator,
    judge: JudgeEvaluator,
    session: Session,
    user_name: str,
) -> None:
    rnd = await orchestrator.start()
    print_round_summary(rnd, session)

    while True:
        try:
            line = (await _read_line(f"[bold]{escape(user_name)}[/bold] > ")).strip()
        except (EOFError, KeyboardInterrupt):
            console.print()
            return

        if not line:
            continue
        command = line.lower()
        if command in QUIT_COMMANDS:
            return
        if command == "/judge":
            with console.status("Analyzing arguments..."):
                verdict = await judge.evaluate()
            print_verdict(verdict)
            continue
        if command == "/refresh":
            with console.status("Re-evaluating..."):
                verdict = await judge.refresh()
            print_verdict(verdict)
            continue

        try:
            rnd = await orchestrator.submit_user_message(line)
        except RoundInProgressError as exc:
            console.print(f"[yellow]{escape(str(exc))}[/yellow]")
            continue
        print_round_summary(rnd, session)


async def _run_discussion(
    session: Session,
    config: AppConfig,
    generator: AIProvider,
    judge_provider: AIProvider,
    recorder: AudioRecorder | None,
    no_delay: bool,
) -> tuple[ConversationLog, JudgeEvaluator]:
    """Run the opening round, then alternate user input and AI rounds."""
    log = ConversationLog(session.participants)
    by_id = {p.id: p for p in session.participants}
    audio_tasks: set[asyncio.Task] = set()

    def on_state_change(state: OrchestratorState) -> None:
        if state.phase is RoundPhase.AWAITING_TURN and state.speaker_id in by_id:
            print_thinking(by_id[state.speaker_id])

    def on_message(message: Message) -> None:
        print_message(message, session)
        if recorder is not None:
            task = asyncio.create_task(recorder.record(message, by_id[message.participant_id]))
            audio_tasks.add(task)
            task.add_done_callback(audio_tasks.discard)

    defaults = config.defaults
    orchestrator = TurnOrchestrator(
        session,
        log,
        generator,
        config.prompts,
        thinking_delay_sec=(0.0, 0.0) if no_delay else defaults.thinking_delay_sec,
        batch_pacing_sec=0.0 if no_delay else defaults.batch_pacing_sec,
        batch_max_turns=defaults.batch_max_turns,
        on_state_change=on_state_change,
        on_message=on_message,
    )
    judge = JudgeEvaluator(session, log, judge_provider, config.prompts.judge)

    user_name = next(p.name for p in session.participants if p.is_user)
    try:
        await _discussion_loop(orchestrator, judge, session, user_name)
    except asyncio.CancelledError:
        # Ctrl+C under asyncio.run cancels this task; keep what was said so far.
        console.print("\n[yellow]Interrupted, ending the discussion.[/yellow]")

    if audio_tasks:
        await asyncio.gather(*audio_tasks)
    return log, judge


@click.command()
@click.argument("topic", required=False)
@click.option("--file", "topic_file", type=click.Path(exists=True), help="Read topic from .md file")
@click.option("--suggest", is_flag=True, help="Let the topic provider suggest a topic")
@click.option("--participants", type=int, default=None, help="Number of AI participants (default: from config)")
@click.option("--policy", type=click.Choice([p.value for p in TurnPolicy]), default=None,
              help="Turn policy (default: from config)")
@click.option("--generator", default=None, help="Provider that voices the participants (default: from config)")
@click.option("--judge", "judge_name", default=None, help="Provider that judges the discussion (default: from config)")
@click.option("--no-delay", is_flag=True, help="Skip the thinking and pacing pauses")
@click.option("--audio-dir", default=None, help="Save spoken AI messages as WAV files here")
@click.option("--export/--no-export", default=True, help="Save a markdown transcript on exit")
@click.option("--output", "output_path", default=None, help="Transcript directory (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    topic: str | None,
    topic_file: str | None,
    suggest: bool,
    participants: int | None,
    policy: str | None,
    generator: str | None,
    judge_name: str | None,
    no_delay: bool,
    audio_dir: str | None,
    export: bool,
    output_path: str | None,
    skip_health_check: bool,
    verbose: bool,
) -> None:
    """Roundtable -- group discussion with AI personas and an AI judge.

    \b
    Examples:
      roundtable "Is remote work good for society?"
      roundtable "Should cities ban cars?" --participants 4 --policy batch
      roundtable --file topic.md --no-delay
      roundtable --suggest --audio-dir ./audio
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    all_providers = _build_all_providers(config)
    if not all_providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check:
        all_providers = _check_and_filter_providers(all_providers)

    meta: dict = {}
    slug_override: str | None = None
    if topic_file:
        topic_text, meta = parse_topic_file(Path(topic_file))
        slug_override = Path(topic_file).stem
    elif topic:
        topic_text = topic
    elif suggest:
        topic_provider = _pick_provider(all_providers, config.defaults.topic_provider, "Topic")
        if topic_provider is None:
            console.print("[bold red]Error:[/bold red] No provider available to suggest a topic.")
            sys.exit(1)
        with console.status("Suggesting a topic..."):
            topic_text = asyncio.run(suggest_topic(topic_provider, config.prompts.topic))
    else:
        console.print("[bold red]Error:[/bold red] Provide a TOPIC argument, --file, or --suggest.")
        sys.exit(1)

    try:
        count, turn_policy = _resolve_setup(config, meta, participants, policy)
        session = create_session(
            topic_text,
            count,
            config.personas,
            voices=config.voices,
            policy=turn_policy,
            max_participants=config.defaults.max_participants,
            user_name=config.defaults.user_name,
        )
    except (ConfigurationError, ValueError) as exc:
        console.print(f"[bold red]Setup error:[/bold red] {exc}")
        sys.exit(1)

    gen_provider = _pick_provider(all_providers, generator or config.defaults.generator, "Generator")
    judge_provider = _pick_provider(all_providers, judge_name or config.defaults.judge, "Judge")
    if gen_provider is None or judge_provider is None:
        console.print("[bold red]Error:[/bold red] No provider available for the generator or judge role.")
        sys.exit(1)

    print_session_header(session, gen_provider.name(), judge_provider.name())
    recorder = _build_recorder(config, audio_dir)

    log, judge = asyncio.run(
        _run_discussion(session, config, gen_provider, judge_provider, recorder, no_delay)
    )

    if export and len(log):
        output_dir = Path(output_path) if output_path else config.defaults.output_dir
        saved = save_transcript(session, log.snapshot(), output_dir, judge.verdict, slug_override)
        console.print(f"\n[dim]Saved to: {saved}[/dim]")


if __name__ == "__main__":
    main()
