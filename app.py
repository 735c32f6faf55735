"""Costume Switch - streaming speaker attribution simulator.

Feeds a text file through the attribution engine the way a chat backend would
stream it, in fixed-size chunks, and prints every costume switch the engine
decides on. Useful for tuning name patterns, verb lists and cooldowns against
real transcripts before deploying a profile.

Examples:
    Stream a transcript with an inline name list:
    $ python app.py chat.txt --patterns Kotori Hanabi "/Mi(?:ka|kan)/i"

    Use an exported profile and print debug traces:
    $ python app.py chat.txt --profile kotori_profile.json --debug

    Run the pattern tester instead of streaming:
    $ python app.py chat.txt --profile kotori_profile.json --analyze
"""

import argparse
import os
import json
import logging
from typing import List, Optional

from config import settings
from costume_switch import (
    CostumeSwitchEngine,
    DetectionProfile,
    LifecycleEvent,
    PatternCompileError,
    ProfileStore,
)


def setup_logging(debug: bool = False) -> None:
    """Setup logging with separate levels for console and file."""
    log_dir = os.path.join(os.getcwd(), settings.LOG_DIR)
    os.makedirs(log_dir, exist_ok=True)

    logging.getLogger().handlers.clear()

    file_log_level = getattr(logging, settings.FILE_LOG_LEVEL.upper(), logging.DEBUG)
    console_log_level = logging.DEBUG if debug else getattr(logging, settings.CONSOLE_LOG_LEVEL.upper(), logging.INFO)

    detailed_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    simple_formatter = logging.Formatter('%(levelname)s - %(name)s - %(message)s')

    file_handler = logging.FileHandler(os.path.join(log_dir, settings.LOG_FILE))
    file_handler.setLevel(file_log_level)
    file_handler.setFormatter(detailed_formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_log_level)
    console_handler.setFormatter(simple_formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)


def load_profile(profile_path: Optional[str], patterns: Optional[List[str]], debug: bool) -> DetectionProfile:
    """Build the profile from an exported profile/settings file and command-line overrides."""
    profile = DetectionProfile()
    if profile_path:
        with open(profile_path, 'r', encoding='utf-8') as f:
            content = json.load(f)
        if 'data' in content and 'name' in content:
            profile = DetectionProfile.from_dict(content['data'])
        else:
            profile = ProfileStore.from_settings(content).active
    if patterns:
        profile.patterns = list(patterns)
    if debug:
        profile.debug = True
    return profile


class SimulatedClock:
    """Millisecond clock that advances a fixed step per streamed chunk."""

    def __init__(self, step_ms: float):
        self.now_ms = 0.0
        self.step_ms = step_ms

    def __call__(self) -> float:
        return self.now_ms

    def tick(self) -> None:
        self.now_ms += self.step_ms


def chunk_text(text: str, chunk_size: int) -> List[str]:
    chunk_size = max(1, chunk_size)
    return [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]


def run_stream(engine: CostumeSwitchEngine, text: str, chunk_size: int, clock: SimulatedClock) -> int:
    """Stream every paragraph as its own turn; returns the number of switches."""
    switches = 0
    turns = [paragraph for paragraph in text.split('\n\n') if paragraph.strip()]
    for message_id, paragraph in enumerate(turns):
        engine.handle_event(LifecycleEvent.TURN_START, message_id=message_id)
        for chunk in chunk_text(paragraph, chunk_size):
            clock.tick()
            decision = engine.handle_event(LifecycleEvent.TOKEN, message_id=message_id, text=chunk)
            if decision is not None:
                switches += 1
                print(f"[turn {message_id}] -> {decision.target} ({decision.kind}, {decision.method})")
        engine.handle_event(LifecycleEvent.TURN_END, message_id=message_id)
    return switches


def print_report(engine: CostumeSwitchEngine, text: str) -> None:
    report = engine.analyze_text(text)
    print(f"Veto: {report.veto or 'none'}")
    print("All detections:")
    for match in report.matches:
        print(f"  {match.name} ({match.kind.value} @ {match.index}, p: {match.priority})")
    if not report.matches:
        print("  none")
    print("Winner timeline:")
    for winner in report.winners:
        print(f"  {winner.name} ({winner.kind.value} @ {winner.index}, score: {round(winner.score)})")
    if report.best is not None:
        print(f"Winner: {report.best.name} ({report.best.kind.value}, score: {round(report.best.score)})")
    print(f"Focus: {json.dumps(report.focus_scores, sort_keys=True)}")


def main() -> None:
    """
    Command-line entry point.

    Reads the input file, builds a detection profile from --profile and
    --patterns, then either streams the text through the engine or prints the
    pattern tester report (--analyze).
    """
    parser = argparse.ArgumentParser(description="Stream a transcript through the costume switch engine.")
    parser.add_argument("input_file", help="Path to a UTF-8 text file; blank lines separate turns.")
    parser.add_argument("--patterns", nargs='+', help="Character name patterns (literal names or /regex/flags).")
    parser.add_argument("--profile", help="Exported profile JSON or stored settings JSON.")
    parser.add_argument("--chunk-size", type=int, default=12, help="Characters per simulated stream token.")
    parser.add_argument("--token-interval-ms", type=float, default=40.0, help="Simulated time between stream tokens.")
    parser.add_argument("--analyze", action="store_true", help="Print the pattern tester report instead of streaming.")
    parser.add_argument("--debug", action="store_true", help="Enable debug diagnostics.")
    args = parser.parse_args()

    setup_logging(args.debug)
    logger = logging.getLogger(__name__)

    input_path = os.path.abspath(args.input_file)
    if not os.path.exists(input_path):
        print(f"Error: Input file not found at {input_path}")
        return

    with open(input_path, 'r', encoding='utf-8') as f:
        text = f.read()

    profile = load_profile(args.profile, args.patterns, args.debug)
    clock = SimulatedClock(args.token_interval_ms)
    engine = CostumeSwitchEngine(switch_handler=lambda target, kind: None, clock=clock)
    try:
        engine.update_profile(profile)
    except PatternCompileError as e:
        print(f"Error: {e}")
        return

    if args.analyze:
        print_report(engine, text)
        return

    switches = run_stream(engine, text, args.chunk_size, clock)
    logger.info(f"Streamed {len(text)} characters, {switches} switches issued")
    print(f"{switches} switch(es) issued.")


if __name__ == "__main__":
    main()
