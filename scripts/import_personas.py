#!/usr/bin/env python3
"""
RizzedIn — Persona Importer: bulk-create practice personas from LinkedIn URLs

Reads one LinkedIn profile URL per line (blank lines and ``#`` comments are
ignored) and imports each as a role-0 persona.  Every URL is committed in
its own transaction so one failure does not undo earlier imports.

Usage examples
--------------
  python scripts/import_personas.py urls.txt
  python scripts/import_personas.py urls.txt --delay 2 --verbose
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

sys.path.insert(0, ".")

from app.database import get_engine, session_scope  # noqa: E402
from app.services.exceptions import ConflictError, RizzedInError  # noqa: E402
from app.services.persona_import_service import PersonaImportService  # noqa: E402

logger = logging.getLogger("rizzedin.import_personas")


def _configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)-7s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def read_urls(path: Path) -> list[str]:
    urls: list[str] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#") and line not in urls:
            urls.append(line)
    return urls


async def run_import(urls: list[str], delay: float) -> dict:
    service = PersonaImportService()
    imported, skipped, failed = 0, 0, 0
    start_time = time.monotonic()

    for index, url in enumerate(urls, start=1):
        logger.info("Importing %d/%d: %s", index, len(urls), url)
        try:
            async with session_scope() as session:
                result = await service.import_persona(url, session)
        except ConflictError as exc:
            skipped += 1
            logger.info("Skipped %s: %s", url, exc)
        except RizzedInError as exc:
            failed += 1
            logger.error("Failed %s: %s", url, exc)
        else:
            imported += 1
            logger.info(
                "Imported %s (%s, %d roles, %d schools)",
                result["persona_id"],
                result.get("name") or "unnamed",
                result["experience_count"],
                result["education_count"],
            )

        if index < len(urls) and delay > 0:
            await asyncio.sleep(delay)

    await get_engine().dispose()

    return {
        "total": len(urls),
        "imported": imported,
        "skipped": skipped,
        "failed": failed,
        "elapsed_s": round(time.monotonic() - start_time, 2),
    }


def main() -> None:
    parser = argparse.ArgumentParser(
        description="RizzedIn Persona Importer: import LinkedIn profiles as practice personas.",
    )
    parser.add_argument("urls_file", type=Path, help="File with one LinkedIn URL per line.")
    parser.add_argument(
        "--delay",
        type=float,
        default=1.0,
        help="Seconds to wait between imports (default: 1.0).",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        default=False,
        help="Enable debug logging.",
    )
    args = parser.parse_args()

    _configure_logging(args.verbose)

    if not args.urls_file.exists():
        parser.error(f"{args.urls_file} does not exist")

    urls = read_urls(args.urls_file)
    if not urls:
        parser.error("no URLs found")

    result = asyncio.run(run_import(urls, args.delay))

    print(f"\n{'=' * 60}")
    print("  Results:")
    for key, value in result.items():
        print(f"    {key}: {value}")
    print(f"{'=' * 60}\n")


if __name__ == "__main__":
    main()
