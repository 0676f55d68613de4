"""
Command line interface
"""

import asyncio
import sys
import click
import uvicorn
from typing import Optional

from app.config import settings
from app.core.logging import setup_logging, api_logger, pipeline_logger


@click.group()
@click.version_option(version=settings.app_version)
def main():
    """Call Audit - call recording transcription and scoring"""
    pass


@main.command()
@click.option('--host', default=None, help='Bind address')
@click.option('--port', default=None, type=int, help='Bind port')
@click.option('--reload', is_flag=True, help='Auto-reload on code changes')
@click.option('--workers', default=1, type=int, help='Worker processes')
@click.option('--log-level', default='info',
              type=click.Choice(['debug', 'info', 'warning', 'error', 'critical']),
              help='Log level')
def server(host: Optional[str], port: Optional[int], reload: bool,
           workers: int, log_level: str):
    """Start the API server"""
    host = host or settings.host
    port = port or settings.port

    setup_logging(level=log_level.upper())
    api_logger.info(f"Starting server on {host}:{port}")

    if reload and workers > 1:
        api_logger.warning("Reload mode does not support multiple workers, using one")
        workers = 1

    uvicorn.run(
        "app.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=workers,
        log_level=log_level,
        access_log=True
    )


@main.command("init-db")
@click.option('--drop', is_flag=True, help='Drop existing tables first')
def init_db(drop: bool):
    """Create the database schema"""
    from app.db.init_db import init_database, drop_tables
    from app.db.session import engine

    setup_logging()

    async def run():
        if drop:
            await drop_tables(engine)
            api_logger.warning("Existing tables dropped")
        await init_database(engine)
        await engine.dispose()

    asyncio.run(run())
    click.echo("Database initialised")


@main.command("retry-failed")
@click.option('--stage', required=True, type=click.Choice(['transcription', 'analysis']),
              help='Stage to retry')
@click.option('--team-id', default=None, type=int, help='Only recordings of this team')
@click.option('--limit', default=100, type=click.IntRange(1, 1000), help='Maximum recordings to retry')
def retry_failed(stage: str, team_id: Optional[int], limit: int):
    """Re-run FAILED and abandoned PROCESSING stages as the system principal"""
    from app.schemas.principal import SYSTEM_PRINCIPAL
    from app.schemas.recording import RecordingQuery
    from app.services.pipeline import get_pipeline_orchestrator, close_pipeline_orchestrator
    from app.db.session import engine

    setup_logging()

    async def run():
        try:
            orchestrator = get_pipeline_orchestrator()
            results = await orchestrator.retry_failed(
                stage, SYSTEM_PRINCIPAL, RecordingQuery(team_id=team_id, limit=limit)
            )
        finally:
            await close_pipeline_orchestrator()
            await engine.dispose()
        return results

    results = asyncio.run(run())

    failed = 0
    for recording_id, result in sorted(results.items()):
        status = result.status.value
        if not result.succeeded:
            failed += 1
            status = f"{status} ({result.error_code}: {result.error_detail})"
        click.echo(f"recording {recording_id}: {status}")

    pipeline_logger.info(f"Retried {stage} for {len(results)} recordings, {failed} still failing")
    click.echo(f"{len(results)} retried, {failed} still failing")
    if failed:
        sys.exit(1)


if __name__ == '__main__':
    main()
