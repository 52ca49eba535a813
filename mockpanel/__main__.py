#!/usr/bin/env python3
"""
Main entry point for the mock interview panel.
Allows running the package with: python -m mockpanel

    python -m mockpanel serve [--host=0.0.0.0] [--port=3001]
    python -m mockpanel interview --panel=panel.json [--candidate=candidate.json] [--no-advisory]
"""
import asyncio
import json
import sys

from .config import get_config, Config
from .utils import setup_logging, parse_log_level

USAGE = __doc__.split("\n\n", 1)[1]


def _option(name: str):
    """Value of a ``--name=value`` argument, or None."""
    prefix = f"--{name}="
    for arg in sys.argv[2:]:
        if arg.startswith(prefix):
            return arg[len(prefix):]
    return None


def _load_json(path: str):
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"❌ Could not read {path}: {e}")
        sys.exit(1)


def serve(config: Config) -> None:
    import uvicorn
    from .infrastructure.advisory import create_app

    host = _option("host") or config.server_host
    port = _option("port")
    try:
        port = int(port) if port else config.server_port
    except ValueError:
        print("❌ Invalid port. Use --port=3001")
        sys.exit(1)

    print(f"🚀 Advisory server on ws://{host}:{port}/ws/interview")
    print(f"🏥 Health check: http://{host}:{port}/api/health")
    uvicorn.run(create_app(target_duration_seconds=config.target_duration_seconds), host=host, port=port)


async def _run_call(orchestrator) -> None:
    from .interview.events import EventType

    ended = asyncio.Event()
    orchestrator.event_bus.subscribe(EventType.SESSION_ENDED, lambda event: ended.set())
    try:
        if not await orchestrator.start():
            print("❌ Could not connect the first panelist")
            return
        print("🎧 Interview live. Press Ctrl+C to end the call.")
        await ended.wait()
    finally:
        orchestrator.end_call()


def interview(config: Config) -> None:
    from .infrastructure.advisory import AdvisoryChannel
    from .infrastructure.audio.playback import PyAudioSink
    from .infrastructure.live.gemini import GeminiLiveProvider
    from .interview.errors import MediaDeviceError
    from .interview.models import CandidateProfile, build_panel
    from .interview.orchestrator import LiveInterviewOrchestrator

    panel_path = _option("panel")
    if not panel_path:
        print("❌ A panel file is required: --panel=panel.json")
        sys.exit(1)
    personas = build_panel(_load_json(panel_path))
    candidate_path = _option("candidate")
    candidate = CandidateProfile.from_dict(_load_json(candidate_path) if candidate_path else None)

    use_advisory = config.enable_advisory and "--no-advisory" not in sys.argv
    if use_advisory:
        print(f"🧭 Advisory hints from {config.advisory_url}")
    else:
        print("🧭 Advisory hints disabled")

    try:
        provider = GeminiLiveProvider.from_config(config)
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    sink = PyAudioSink()
    try:
        sink.open()
    except MediaDeviceError as e:
        print(f"❌ Speaker unavailable: {e}")
        sys.exit(1)

    orchestrator = LiveInterviewOrchestrator(
        provider,
        sink,
        personas,
        candidate,
        advisory=AdvisoryChannel(config.advisory_url) if use_advisory else None,
        target_duration_seconds=config.target_duration_seconds,
    )

    try:
        asyncio.run(_run_call(orchestrator))
    except KeyboardInterrupt:
        print("\n👋 Call ended")
    except MediaDeviceError as e:
        print(f"❌ Microphone unavailable: {e}")
        sys.exit(1)

    print("\n" + "=" * 50)
    print("📝 TRANSCRIPT")
    print("=" * 50)
    for line in orchestrator.transcript_lines():
        print(line)
    summary = orchestrator.export()
    print(f"\n📚 Topics covered: {', '.join(summary['topics_covered']) or 'none'}")
    print(f"📈 Session metrics: {summary['metrics']}")
    print(f"📁 Full details logged to: {config.log_file}")


def main():
    """Command-line interface for the mock interview panel."""
    if len(sys.argv) < 2 or sys.argv[1] not in ("serve", "interview"):
        print(USAGE)
        sys.exit(1)

    # Load configuration from environment
    try:
        config = get_config()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    setup_logging(config.log_file, console_level=parse_log_level(config.log_level))

    if sys.argv[1] == "serve":
        serve(config)
    else:
        interview(config)


if __name__ == "__main__":
    main()
