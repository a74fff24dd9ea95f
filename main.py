"""Command-line entrypoint for the streaming recognizer."""

from __future__ import annotations

import argparse
import logging
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional, Sequence

from auto_paste import ClipboardPasteService
from availability import check_availability
from config import EngineSettings, JsonConfigStore
from dictation import DictationController, DictationStream
from errors import ERROR_MESSAGES
from models import DictationState, PasteResult
from wake_word import WakeWordListener


class _PrintOnlyPasteService:
    def paste_text(self, text: str) -> PasteResult:
        return PasteResult(success=True, reason="printed", clipboard_restored=True)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stt-stream", description=__doc__)
    parser.add_argument("--executable", help="recognizer executable (overrides config)")
    parser.add_argument("--language", default="auto", help="ISO 639-1 code, locale tag or 'auto'")
    parser.add_argument("--config", type=Path, help="path to the engine settings JSON file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("check", help="report recognizer availability")

    dictate = sub.add_parser("dictate", help="stream until Enter, then print the transcript")
    dictate.add_argument("--paste", action="store_true", help="paste the transcript when done")

    wake = sub.add_parser("wake", help="print a line each time the wake phrase is heard")
    wake.add_argument("--phrase", required=True)
    return parser


def _load_settings(args: argparse.Namespace) -> EngineSettings:
    settings = JsonConfigStore(path=args.config).load()
    if args.executable:
        settings.executable = args.executable
    return settings


def _run_check(command: List[str], settings: EngineSettings, language: str) -> int:
    result = check_availability(command, language=language, timeout_s=settings.check_timeout_s)
    if result.error_code:
        print(ERROR_MESSAGES.get(result.error_code, result.error_code), file=sys.stderr)
        return 1
    print(
        f"available={result.available} permission={result.permission_granted} "
        f"on_device={result.supports_on_device}"
    )
    return 0 if result.available and result.permission_granted else 1


def _run_dictate(
    command: List[str], settings: EngineSettings, language: str, paste: bool
) -> int:
    failed = threading.Event()

    def on_partial(text: str, is_final: bool) -> None:
        print(("* " if is_final else "  ") + text, flush=True)

    def on_error(code: str, message: str) -> None:
        print(f"{code}: {message}", file=sys.stderr, flush=True)
        failed.set()

    controller = DictationController(
        stream=DictationStream(command, settings=settings),
        paste_service=ClipboardPasteService() if paste else _PrintOnlyPasteService(),
        finalize_timeout_s=settings.stop_timeout_s + 2.0,
        on_partial=on_partial,
        on_error=on_error,
    )
    controller.start_session(language)
    if controller.state != DictationState.STREAMING:
        return 1
    print("Listening, press Enter to finish.", file=sys.stderr)
    try:
        sys.stdin.readline()
    except KeyboardInterrupt:
        controller.cancel_session("interrupted")
        return 130
    text = controller.stop_session()
    print(text)
    return 1 if failed.is_set() and not text else 0


def _run_wake(command: List[str], settings: EngineSettings, language: str, phrase: str) -> int:
    def on_detected() -> None:
        print(f"detected: {phrase}", flush=True)

    listener = WakeWordListener(command, settings=settings)
    listener.start(phrase, on_detected, language=language)
    print("Listening for wake phrase, Ctrl-C to quit.", file=sys.stderr)
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        return 0
    finally:
        listener.stop()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = _load_settings(args)
    command = [settings.executable]

    if args.command == "check":
        return _run_check(command, settings, args.language)
    if args.command == "dictate":
        return _run_dictate(command, settings, args.language, args.paste)
    return _run_wake(command, settings, args.language, args.phrase)


if __name__ == "__main__":
    raise SystemExit(main())
