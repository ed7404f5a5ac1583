import argparse
import asyncio
import json
import sys
from pathlib import Path

from app.config.settings import Settings
from app.database.connection import close_pool, init_pool
from app.logging.logger import Log
from app.processor.request_loader import build_request
from app.processor.service import build_service


async def run(settings: Settings, request_path: Path) -> dict:
    """Run one generation request to completion and return the note status."""
    request = build_request(json.loads(request_path.read_text(encoding="utf-8")))
    needs_pool = "postgres" in (
        settings.storage_backend.lower(),
        settings.rate_limit_backend.lower(),
    )
    service = build_service(settings)
    if needs_pool:
        await init_pool(settings)

    try:
        handle = await service.start_generation(request)
        await handle.result()
        await service.supervisor.shutdown()
        status = await service.generation_status(handle.batch_id)
        return status.to_dict()
    finally:
        if needs_pool:
            await close_pool()


def main(argv: list[str] | None = None) -> None:
    """Entry point: load settings -> build dependencies -> generate one note."""
    parser = argparse.ArgumentParser(description="Generate a clinical note from session text.")
    parser.add_argument("--request", type=Path, required=True, help="Path to request JSON")
    args = parser.parse_args(argv)

    settings = Settings()
    Log.configure(settings.log_level, stream=sys.stderr)
    try:
        summary = asyncio.run(run(settings, args.request))
    except KeyboardInterrupt:
        Log.info("Interrupted, shutting down")
        sys.exit(130)
    json.dump(summary, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


if __name__ == "__main__":
    main()
