"""
Entry point for tgrelabel.

This module provides the command-line interface. It scans TextGrid
folders for rule matches, applies replacement options, and previews
audio segments through the playback actor.

Usage:
    python -m tgrelabel [--config FILE] [--verbose] <command> [options]

Commands:
    scan        List rule matches in a TextGrid folder
    apply       Choose one replacement option for every match and save
    devices     List audio output devices
    play        Play a segment of an audio file
    test-tone   Play a test tone on an output device

Examples:
    # Show every match of the "flap" rule
    python -m tgrelabel scan corpus/TextGrid --rule flap

    # Replace every match with the first option, keeping backups
    python -m tgrelabel apply corpus/TextGrid --rule flap --option 0 --backup

    # Preview 1.5 s starting at 2.3 s
    python -m tgrelabel play corpus/wav/s01.wav 2300 1500
"""

from __future__ import annotations

import argparse
import logging
import sys
import time

from . import config as config_module
from .errors import RelabelError
from .matching.rules import find_rule, load_rules
from .session import Session

logger = logging.getLogger('tgrelabel')


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace with the global options and the chosen command
    """
    parser = argparse.ArgumentParser(
        prog='tgrelabel',
        description="tgrelabel - find and fix mislabeled phones in TextGrids"
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to custom config file (YAML or JSON)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug output"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="List rule matches in a TextGrid folder")
    scan.add_argument("textgrid_dir", help="Folder containing TextGrid files")
    scan.add_argument("--rule", "-r", required=True, help="Rule name from the config file")

    apply = sub.add_parser("apply", help="Choose one option for every match and save")
    apply.add_argument("textgrid_dir", help="Folder containing TextGrid files")
    apply.add_argument("--rule", "-r", required=True, help="Rule name from the config file")
    apply.add_argument("--option", "-o", type=int, required=True,
                       help="Index of the replacement option to apply")
    apply.add_argument("--backup", action="store_true", default=None,
                       help="Copy each file to <name>.bak before the first rewrite")

    sub.add_parser("devices", help="List audio output devices")

    play = sub.add_parser("play", help="Play a segment of an audio file")
    play.add_argument("audio_file", help="Audio file (WAV, FLAC, OGG)")
    play.add_argument("start_ms", type=int, help="Segment start in milliseconds")
    play.add_argument("window_ms", type=int, help="Segment length in milliseconds")
    play.add_argument("--volume", type=float, help="Volume factor")
    play.add_argument("--device", "-d", help="Output device name")

    tone = sub.add_parser("test-tone", help="Play a test tone")
    tone.add_argument("--device", "-d", help="Output device name")

    return parser.parse_args(argv)


def _selected_rule(name: str):
    rules = load_rules(config_module.config['rules'])
    return find_rule(rules, name)


def cmd_scan(args) -> int:
    rule = _selected_rule(args.rule)
    session = Session()
    session.scan(args.textgrid_dir, rule)
    for item in session.items:
        print(f"{item.file.name}")
        for k, title in enumerate(item.context_titles):
            print(f"  {k:3d}  {title}")
    return 0


def cmd_apply(args) -> int:
    rule = _selected_rule(args.rule)
    session = Session()
    session.scan(args.textgrid_dir, rule)
    for i, item in enumerate(session.items):
        for k in range(len(item.matches)):
            session.choose_option(i, k, args.option)
    failed = session.save(create_backup=args.backup)
    print(f"Saved {len(session) - len(failed)} of {len(session)} files")
    return 1 if failed else 0


def cmd_devices(args) -> int:
    from .audio.player import list_output_devices

    default, names = list_output_devices()
    for name in names:
        marker = '*' if name == default else ' '
        print(f"{marker} {name}")
    return 0


def _run_actor(device, send) -> int:
    from .audio.actor import AudioActor, PlaybackState

    errors = []
    actor = AudioActor(device=device, on_error=errors.append).start()
    send(actor)
    actor.flush()
    while not errors and actor.state is PlaybackState.PLAYING:
        time.sleep(0.05)
    actor.stop(timeout=2.0)
    return 1 if errors else 0


def cmd_play(args) -> int:
    playback = config_module.config['playback']
    volume = args.volume if args.volume is not None else playback['volume_factor']
    device = args.device or playback['device']
    return _run_actor(device, lambda actor: actor.play_segment(
        args.audio_file, args.start_ms, args.window_ms, volume))


def cmd_test_tone(args) -> int:
    device = args.device or config_module.config['playback']['device']
    return _run_actor(device, lambda actor: actor.test_tone())


COMMANDS = {
    'scan': cmd_scan,
    'apply': cmd_apply,
    'devices': cmd_devices,
    'play': cmd_play,
    'test-tone': cmd_test_tone,
}


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the tgrelabel command line.

    Returns:
        Exit code (0 for success)
    """
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(name)s %(levelname)s: %(message)s",
    )

    # Load custom config if specified (must happen before any command runs)
    if args.config:
        config_module.reload_config(args.config)

    try:
        return COMMANDS[args.command](args)
    except (RelabelError, OSError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
