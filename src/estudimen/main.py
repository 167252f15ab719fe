"""Main application entry point.

Builds the record store, credential vault and session authority once per
process and serves them through the FastAPI app.
"""

import argparse
import asyncio
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta

import uvicorn
from fastapi import FastAPI

from estudimen import __version__
from estudimen.api import router
from estudimen.auth.hashing import SecretHasher
from estudimen.auth.session_authority import SessionAuthority
from estudimen.config.settings import Settings, load_settings
from estudimen.exceptions import ConfigurationError
from estudimen.scheduler import create_scheduler
from estudimen.services.account_service import AccountService
from estudimen.services.api_key_service import ApiKeyService
from estudimen.storage import RecordStore, create_storage
from estudimen.utils.logger import configure_logging, get_logger, reset_log_context
from estudimen.vault import CredentialVault, generate_encryption_key


@dataclass
class AppServices:
    """Process-wide service instances."""

    storage: RecordStore
    vault: CredentialVault
    authority: SessionAuthority
    accounts: AccountService
    api_keys: ApiKeyService


def build_services(settings: Settings, storage: RecordStore | None = None) -> AppServices:
    """Wire services from settings.

    Args:
        settings: Validated application settings.
        storage: Record store to use instead of the configured backend.

    Raises:
        ConfigurationError: If any component rejects its configuration.
    """
    if storage is None:
        storage = create_storage(settings)
    hasher = SecretHasher(time_cost=settings.hash_time_cost)
    vault = CredentialVault(settings.encryption_key.get_secret_value())
    authority = SessionAuthority(
        storage,
        secret_key=settings.jwt_secret.get_secret_value(),
        access_token_ttl=timedelta(minutes=settings.access_token_expiry_minutes),
        refresh_token_ttl=timedelta(days=settings.refresh_token_expiry_days),
        hasher=hasher,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
    )
    return AppServices(
        storage=storage,
        vault=vault,
        authority=authority,
        accounts=AccountService(storage, hasher, authority=authority),
        api_keys=ApiKeyService(
            storage,
            vault,
            max_keys_per_user=settings.max_api_keys_per_user,
            prefix_length=settings.api_key_prefix_length,
        ),
    )


def create_app(
    settings: Settings | None = None,
    storage: RecordStore | None = None,
    enable_scheduler: bool = True,
) -> FastAPI:
    """Create FastAPI application.

    Raises:
        ConfigurationError: If settings are missing or invalid.
    """
    settings = settings or load_settings()
    services = build_services(settings, storage)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger = get_logger("lifespan")
        logger.info("Starting Estudimen application", db_type=settings.db_type)

        await services.storage.initialize()

        scheduler = None
        if enable_scheduler:
            scheduler = create_scheduler(
                services.authority,
                interval_minutes=settings.token_cleanup_interval_minutes,
            )
            scheduler.start()

        yield

        if scheduler is not None:
            scheduler.shutdown()
        await services.storage.close()
        logger.info("Estudimen application stopped")

    app = FastAPI(
        title="Estudimen API",
        description="Study planner sessions and encrypted AI provider keys",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.storage = services.storage
    app.state.vault = services.vault
    app.state.authority = services.authority
    app.state.accounts = services.accounts
    app.state.api_keys = services.api_keys
    app.middleware("http")(reset_log_context)
    app.include_router(router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok", "version": __version__}

    return app


async def run_cleanup_once(settings: Settings) -> int:
    """Purge expired refresh token records once, without serving traffic."""
    services = build_services(settings)
    await services.storage.initialize()
    try:
        return await services.authority.cleanup_expired()
    finally:
        await services.storage.close()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Estudimen - study planner auth core")
    parser.add_argument(
        "--cleanup-tokens",
        action="store_true",
        help="Delete expired refresh tokens and exit (no API server)",
    )
    parser.add_argument(
        "--generate-key",
        action="store_true",
        help="Print a random key suitable for ENCRYPTION_KEY or JWT_SECRET and exit",
    )
    parser.add_argument("--host", default=None, help="API server host (default: API_HOST)")
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="API server port (default: API_PORT)",
    )
    args = parser.parse_args()

    if args.generate_key:
        print(generate_encryption_key())
        return

    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.log_json,
    )
    logger = get_logger("cli")

    if args.cleanup_tokens:
        count = asyncio.run(run_cleanup_once(settings))
        logger.info("Token cleanup completed", removed=count)
        return

    try:
        app = create_app(settings)
    except ConfigurationError as e:
        logger.error("Startup aborted", error=str(e))
        sys.exit(1)

    uvicorn.run(
        app,
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
