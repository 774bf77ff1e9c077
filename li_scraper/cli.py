from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Sequence

from .config import config_sha256, load_config, resolve_runtime_secrets
from .config_schema import AppConfig
from .errors import ApifyError, ConfigError, ExportError, ScrapeError, StorageError
from .run_log import RunLogger
from .storage import SQLiteProfileStore


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        required=True,
        help="Path to YAML config file.",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database path (overrides storage.database_path).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="li_scraper")

    subparsers = parser.add_subparsers(dest="command", required=True)

    add = subparsers.add_parser("add-profile", help="Track a LinkedIn profile for scraping.")
    _add_common_args(add)
    add.add_argument("--url", required=True, help="LinkedIn profile URL.")
    add.add_argument("--name", default=None, help="Display name.")
    add.add_argument("--headline", default=None, help="Profile headline.")
    add.set_defaults(_handler=_cmd_add_profile)

    scrape = subparsers.add_parser(
        "scrape",
        help="Scrape a profile's posts, analyze them and store the results.",
    )
    _add_common_args(scrape)
    scrape.add_argument("--profile-id", required=True, help="Tracked profile id.")
    scrape.add_argument(
        "--profile-url",
        default=None,
        help="Profile URL to scrape (defaults to the tracked profile's URL).",
    )
    scrape.add_argument(
        "--max-posts",
        type=int,
        default=None,
        help="Maximum posts to request (defaults to scrape.default_max_posts).",
    )
    scrape.add_argument(
        "--offline",
        action="store_true",
        help="Run without network calls using a small stub dataset.",
    )
    scrape.set_defaults(_handler=_cmd_scrape)

    status = subparsers.add_parser("status", help="Show a profile's scrape status.")
    _add_common_args(status)
    status.add_argument("--profile-id", required=True, help="Tracked profile id.")
    status.set_defaults(_handler=_cmd_status)

    stats = subparsers.add_parser("stats", help="Summarize a profile's stored posts.")
    _add_common_args(stats)
    stats.add_argument("--profile-id", required=True, help="Tracked profile id.")
    stats.set_defaults(_handler=_cmd_stats)

    export = subparsers.add_parser("export", help="Export a profile's posts to Excel.")
    _add_common_args(export)
    export.add_argument("--profile-id", required=True, help="Tracked profile id.")
    export.add_argument("--out", required=True, help="Output .xlsx path.")
    export.set_defaults(_handler=_cmd_export)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _print_json(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, sort_keys=True))


def _open_store(cfg: AppConfig, args: argparse.Namespace) -> SQLiteProfileStore:
    return SQLiteProfileStore.open(args.db or cfg.storage.database_path)


def _cmd_add_profile(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _open_store(cfg, args) as store:
        profile = store.create_profile(
            linkedin_url=args.url,
            full_name=args.name,
            headline=args.headline,
        )
    _print_json({"profileId": profile.id, "status": profile.scrape_status})
    return 0


def _cmd_scrape(args: argparse.Namespace) -> int:
    from .scrape import run_scrape

    cfg = load_config(args.config)
    offline = bool(getattr(args, "offline", False))

    with RunLogger.open(Path(cfg.logging.run_log_path), overwrite=False) as log:
        log.info(
            "scrape_command_started",
            config_path=str(args.config),
            config_hash=config_sha256(cfg),
            profile_id=args.profile_id,
            offline=offline,
        )

        try:
            if offline:
                from .offline import OfflineLinkedInPostScraper

                scraper: Any = OfflineLinkedInPostScraper()
            else:
                from .apify_client import LinkedInPostScraper

                secrets = resolve_runtime_secrets(cfg)
                scraper = LinkedInPostScraper(
                    secrets.apify_token,
                    apify=cfg.apify,
                    on_retry=lambda ev: log.warning(
                        "provider_retry",
                        operation=ev.operation,
                        attempt=ev.failure_attempt,
                        delay_seconds=ev.delay_seconds,
                        reason=ev.reason,
                        error_type=ev.error_type,
                    ),
                )

            with _open_store(cfg, args) as store:
                profile_url = args.profile_url
                if not profile_url:
                    profile = store.get_profile(args.profile_id)
                    profile_url = profile.linkedin_url if profile is not None else ""
                if not profile_url:
                    _print_json({"error": "Profile not found"})
                    return 3

                result = asyncio.run(
                    run_scrape(
                        args.profile_id,
                        profile_url,
                        args.max_posts,
                        scraper=scraper,
                        store=store,
                        config=cfg.scrape,
                        logger=log,
                    )
                )
        except ScrapeError as e:
            log.exception("scrape_command_failed", exc=e)
            _print_json({"error": str(e)})
            return 3
        except (ApifyError, StorageError) as e:
            log.exception("scrape_command_failed", exc=e)
            _print_json({"error": "Failed to scrape profile"})
            return 3
        except ConfigError as e:
            log.exception("scrape_command_failed", exc=e)
            raise
        except Exception as e:
            log.exception("scrape_command_failed", exc=e)
            _print_json({"error": "Failed to scrape profile"})
            raise

    _print_json(result.to_response())
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    with _open_store(cfg, args) as store:
        status = store.get_profile_status(args.profile_id)

    _print_json(
        {
            "status": status.status if status is not None else None,
            "lastScraped": status.last_scraped_at if status is not None else None,
        }
    )
    return 0


def _cmd_stats(args: argparse.Namespace) -> int:
    from .stats import profile_stats

    cfg = load_config(args.config)
    with _open_store(cfg, args) as store:
        stats = profile_stats(store, args.profile_id)
    _print_json(stats.to_dict())
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    from .export_excel import export_profile_workbook

    cfg = load_config(args.config)
    with _open_store(cfg, args) as store:
        out = export_profile_workbook(store, args.profile_id, args.out)
    print(f"workbook={out}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except (ApifyError, StorageError, ExportError, ScrapeError) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
