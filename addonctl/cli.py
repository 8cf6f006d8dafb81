from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from core.config import get_settings
from core.device_api import ContractError, DeviceClient, HTTPError, NetworkError
from core.errors import RangeError
from core.models import AddonsConfig
from core.notes import NOTE_TABLE, SONG_LENGTH_LIMIT, Song, check_song_length, normalize, strip_song_text
import core.synthesizer as synth  # IMPORTANT: allow monkeypatch in tests
from core.validation import FIELD_LABELS, coerce_field, collect_errors, validate_config


# exit codes (keep stable)
EXIT_OK = 0
EXIT_INVALID = 2
EXIT_NETWORK_OR_HTTP = 4
EXIT_BAD_ARGS = 5


def _print_err(msg: str) -> None:
    print(msg, file=sys.stderr)


def _parse_pins(raw: str) -> list[int]:
    if not raw:
        return []
    try:
        return [int(p) for p in raw.split(",") if p.strip()]
    except ValueError as e:
        raise ValueError(f"--used-pins must be comma-separated integers: {raw}") from e


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception as e:
        raise ValueError(f"Invalid JSON: {path} ({e})") from e
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object: {path}")
    return data


def _record_values(data: dict[str, Any]) -> dict[str, Any]:
    """Known fields of a record file, coerced like the form does."""
    return {k: coerce_field(k, v) for k, v in data.items() if k in FIELD_LABELS}


def build_parser() -> argparse.ArgumentParser:
    default_base = get_settings().device_base_url

    p = argparse.ArgumentParser(prog="addonctl", description="Add-ons configuration tools (device API + local checks)")
    sub = p.add_subparsers(dest="cmd", required=True)

    # ------------------------------------------------------------
    # validate: local record check (no device)
    # ------------------------------------------------------------
    v = sub.add_parser("validate", help="Validate an add-ons record JSON file")
    v.add_argument("config", type=str, help="Path to record JSON (device field names)")
    v.add_argument("--used-pins", dest="used_pins", default="", help="Pins claimed by the device, e.g. 2,3,4")
    v.add_argument("--catalog-size", dest="catalog_size", type=int, default=None, help="Number of catalogue songs")
    v.add_argument("--json", dest="as_json", action="store_true", help="Print the report as JSON")

    # ------------------------------------------------------------
    # notes: print the vocabulary
    # ------------------------------------------------------------
    sub.add_parser("notes", help="List valid note names and frequencies")

    # ------------------------------------------------------------
    # song: check / render
    # ------------------------------------------------------------
    sg = sub.add_parser("song", help="Custom intro song tools")
    sg_sub = sg.add_subparsers(dest="song_cmd", required=True)

    chk = sg_sub.add_parser("check", help="Validate a song text")
    chk.add_argument("text", type=str, help='Song text, e.g. "C4,E4,G4,PAUSE"')

    rnd = sg_sub.add_parser("render", help="Render a song text to WAV")
    rnd.add_argument("text", type=str, help="Song text")
    rnd.add_argument("--duration", type=int, default=150, help="Tone duration in ms (0~1000)")
    rnd.add_argument("--volume", type=int, default=100, help="Volume (0~100)")
    rnd.add_argument("--sample-rate", dest="sample_rate", type=int, default=None, help="Output sample rate")
    rnd.add_argument("--out", type=str, default="song.wav", help="Output .wav path")

    # ------------------------------------------------------------
    # pull / push: device round trip
    # ------------------------------------------------------------
    pull = sub.add_parser("pull", help="GET add-ons options from the device -> JSON file")
    pull.add_argument("--base-url", dest="base_url", default=default_base, help="Device base url")
    pull.add_argument("--out", type=str, default="addons.json", help="Output .json path")

    push = sub.add_parser("push", help="Validate a record JSON against the device snapshot and save it")
    push.add_argument("config", type=str, help="Path to record JSON")
    push.add_argument("--base-url", dest="base_url", default=default_base, help="Device base url")
    push.add_argument("--dry-run", dest="dry_run", action="store_true", help="Validate only, do not save")

    return p


# -------------------------------
# Commands
# -------------------------------
def _print_errors(errors: dict[str, Any]) -> None:
    for name, err in errors.items():
        print(f"{name}: {err.message}")


def cmd_validate(args: argparse.Namespace) -> int:
    try:
        values = _record_values(_read_json(Path(args.config)))
        used = _parse_pins(args.used_pins)
    except ValueError as e:
        _print_err(str(e))
        return EXIT_BAD_ARGS

    if args.as_json:
        report = validate_config(values, used, catalog_size=args.catalog_size)
        print(report.model_dump_json(indent=2))
        return EXIT_OK if report.ok else EXIT_INVALID

    errors = collect_errors(values, used, catalog_size=args.catalog_size)
    if errors:
        _print_errors(errors)
        return EXIT_INVALID
    print("ok")
    return EXIT_OK


def cmd_notes(_: argparse.Namespace) -> int:
    for name, hz in NOTE_TABLE.items():
        print(f"{name}\t{hz}")
    return EXIT_OK


def cmd_song_check(args: argparse.Namespace) -> int:
    errors = collect_errors({"buzzerIntroSong": 0, "buzzerCustomIntroSong": coerce_field("buzzerCustomIntroSong", args.text)})
    err = errors.get("buzzerCustomIntroSong")
    if err is not None:
        _print_err(err.message)
        return EXIT_INVALID
    tokens = normalize(args.text)
    print(f"ok ({len(tokens)} tones, limit {SONG_LENGTH_LIMIT} chars)")
    return EXIT_OK


def cmd_song_render(args: argparse.Namespace) -> int:
    if not 0 <= int(args.duration) <= 1000:
        _print_err("--duration must be between 0 and 1000")
        return EXIT_BAD_ARGS

    try:
        check_song_length(strip_song_text(args.text))
    except RangeError as e:
        _print_err(e.message)
        return EXIT_INVALID

    song = Song(tokens=tuple(normalize(args.text)), tone_duration_ms=int(args.duration), name=Path(args.out).stem)
    try:
        out_path = synth.write_song_wav(
            song,
            Path(args.out),
            sample_rate=args.sample_rate,
            volume=int(args.volume),
        )
    except (OSError, RuntimeError) as e:
        _print_err(str(e))
        return EXIT_BAD_ARGS
    print(str(out_path))
    return EXIT_OK


def cmd_pull(args: argparse.Namespace) -> int:
    out_path = Path(args.out).resolve()
    client = DeviceClient(base_url=args.base_url, timeout_s=get_settings().device_timeout_s)
    try:
        options = client.get_addons_options()
        payload = options.config.to_wire()
        payload["usedPins"] = options.used_pins
        payload["buzzerSongs"] = [s.model_dump(by_alias=True) for s in options.catalog]

        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        print(str(out_path))
        return EXIT_OK
    except (NetworkError, HTTPError) as e:
        _print_err(str(e))
        return EXIT_NETWORK_OR_HTTP
    except ContractError as e:
        _print_err(f"Contract error: {e}")
        return EXIT_NETWORK_OR_HTTP
    finally:
        client.close()


def cmd_push(args: argparse.Namespace) -> int:
    client = DeviceClient(base_url=args.base_url, timeout_s=get_settings().device_timeout_s)
    try:
        values = _record_values(_read_json(Path(args.config)))

        # Validate against the device's own snapshot, then merge over its record
        options = client.get_addons_options()
        merged = {**options.config.to_wire(), **values}
        errors = collect_errors(merged, options.used_pins, catalog_size=len(options.catalog))
        if errors:
            _print_errors(errors)
            return EXIT_INVALID

        if args.dry_run:
            print("ok (dry run)")
            return EXIT_OK

        if not client.set_addons_options(AddonsConfig.model_validate(merged)):
            _print_err("Unable to Save")
            return EXIT_NETWORK_OR_HTTP
        print("Saved! Please Restart Your Device")
        return EXIT_OK

    except (NetworkError, HTTPError) as e:
        _print_err(str(e))
        return EXIT_NETWORK_OR_HTTP
    except ContractError as e:
        _print_err(f"Contract error: {e}")
        return EXIT_NETWORK_OR_HTTP
    except ValueError as e:
        _print_err(str(e))
        return EXIT_BAD_ARGS
    finally:
        client.close()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "validate":
        return cmd_validate(args)
    if args.cmd == "notes":
        return cmd_notes(args)
    if args.cmd == "song":
        if args.song_cmd == "check":
            return cmd_song_check(args)
        if args.song_cmd == "render":
            return cmd_song_render(args)
    if args.cmd == "pull":
        return cmd_pull(args)
    if args.cmd == "push":
        return cmd_push(args)

    _print_err("Unknown command.")
    return EXIT_BAD_ARGS


if __name__ == "__main__":
    raise SystemExit(main())
