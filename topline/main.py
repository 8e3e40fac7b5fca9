"""
Topline curation service - Main Entry Point.
FastAPI server and CLI interface.
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import content, pipeline as pipeline_routes
from .api.dependencies import verify_api_key
from .config import ConfigurationError, get_settings
from .database import get_database
from .pipeline import CurationPipeline
from .schemas import ContentKind


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize settings and database tables before serving."""
    settings = get_settings()
    configure_logging(settings.log_level)
    app.state.settings = settings
    try:
        db = get_database()
        db.create_tables()
        app.state.db = db
        logger.info("[OK] Database initialized")
    except Exception as e:
        logger.error(f"[FAIL] Database initialization failed: {e}")
        raise

    if settings.mock_mode:
        logger.info("Running in MOCK MODE (deterministic generation)")
    elif not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set; pipeline runs will be refused")
    yield


app = FastAPI(
    title="Topline Curation Service",
    description="Curated industry news and market metrics with sales commentary",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pipeline_routes.router, dependencies=[Depends(verify_api_key)])
app.include_router(content.router, dependencies=[Depends(verify_api_key)])


# CLI Runner
def _print_summary(summary):
    totals = summary.totals()
    print("\n" + "=" * 60)
    print("RUN SUMMARY")
    print("=" * 60)
    print(f"Run: {summary.run_id} ({summary.status})")
    print(f"Fetched: {totals['fetched']}  Added: {totals['added']}  "
          f"Irrelevant: {totals['irrelevant']}  Duplicates: {totals['duplicates']}  "
          f"Failed: {totals['failed']}")
    print(f"Runtime: {summary.run_time_seconds:.2f}s")
    if summary.errors:
        print(f"\nErrors: {len(summary.errors)}")
        for error in summary.errors[:5]:
            print(f"   - {error}")
    print("=" * 60 + "\n")


async def cli_main(argv=None) -> int:
    """Command-line interface for running the pipeline and maintenance."""
    import argparse

    parser = argparse.ArgumentParser(description="Topline curation service")
    parser.add_argument("--run", action="store_true", help="Run one ingestion pass over all enabled feeds")
    parser.add_argument(
        "--rotate",
        choices=[k.value for k in ContentKind] + ["all"],
        help="Rotate the published set of a collection",
    )
    parser.add_argument(
        "--maintenance",
        choices=["reclassify", "regenerate", "cleanup"],
        help="Run a maintenance pass over stored records",
    )
    parser.add_argument(
        "--kind",
        choices=[k.value for k in ContentKind],
        default=ContentKind.ARTICLE.value,
        help="Collection for --maintenance (default: article)",
    )
    parser.add_argument("--mock", action="store_true", help="Mock mode (no real API calls)")
    parser.add_argument("--server", action="store_true", help="Start the FastAPI server")
    parser.add_argument("--port", type=int, default=8000, help="Server port (default: 8000)")

    args = parser.parse_args(argv)

    settings = get_settings()
    if args.mock:
        settings = settings.model_copy(update={"mock_mode": True})
    configure_logging(settings.log_level)

    if args.server:
        import uvicorn
        logger.info(f"Starting server on port {args.port}...")
        uvicorn.run(app, host="0.0.0.0", port=args.port)
        return 0

    if not (args.run or args.rotate or args.maintenance):
        parser.print_help()
        return 2

    db = get_database()
    db.create_tables()
    curation = CurationPipeline(db=db, settings=settings)

    try:
        if args.run:
            _print_summary(await curation.run())
        if args.maintenance:
            kind = ContentKind(args.kind)
            if args.maintenance == "reclassify":
                result = await curation.reclassify(kind)
            elif args.maintenance == "regenerate":
                result = await curation.regenerate_generic_content(kind)
            else:
                result = curation.cleanup(kind)
            print(f"{result.action} {kind.value}: examined={result.examined} "
                  f"updated={result.updated} removed={result.removed} failed={result.failed}")
        if args.rotate:
            kinds = list(ContentKind) if args.rotate == "all" else [ContentKind(args.rotate)]
            for kind in kinds:
                rotation = curation.rotation.rotate(kind)
                print(f"Rotated {kind.value}: archived {rotation.archived}, "
                      f"published {len(rotation.published_ids)}")
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    return 0


def main():
    """Entry point for CLI."""
    sys.exit(asyncio.run(cli_main()))


if __name__ == "__main__":
    main()
