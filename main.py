"""Main entry point for the Zotero → Readwise highlight sync."""

import logging
import sys
from typing import Any

import hydra
from omegaconf import DictConfig, OmegaConf

from zotero_readwise_sync.cli.commands import dry_run_command, sync_command
from zotero_readwise_sync.clients.exceptions import (
    ReadwiseClientError,
    SyncError,
    ZoteroClientError,
)
from zotero_readwise_sync.clients.readwise_client import ReadwiseClient, mask_token
from zotero_readwise_sync.clients.zotero_client import ZoteroClient
from zotero_readwise_sync.domain.config import (
    AppConfig,
    ConfigError,
    ReadwiseConfig,
    RetryConfig,
    StateConfig,
    SyncConfig,
    ZoteroConfig,
    register_configs,
)
from zotero_readwise_sync.domain.mapper import HighlightMapper
from zotero_readwise_sync.domain.models import SyncRequest, SyncScope
from zotero_readwise_sync.orchestration.collector import AnnotationCollector
from zotero_readwise_sync.orchestration.orchestrator import SyncOrchestrator
from zotero_readwise_sync.orchestration.sender import HighlightSender
from zotero_readwise_sync.storage.state_store import JsonFileStateStore
from zotero_readwise_sync.utils.logging import log_startup


def build_app_config(cfg: DictConfig) -> AppConfig:
    """Convert the Hydra DictConfig into a validated AppConfig.

    Raises:
        ConfigError: If any configuration group is missing or invalid.
    """
    raw: Any = OmegaConf.to_container(cfg, resolve=True)
    if not isinstance(raw, dict) or "zotero" not in raw:
        raise ConfigError("Configuration must contain a 'zotero' group")

    readwise_kw = dict(raw.get("readwise") or {})

    try:
        retry_config = RetryConfig(**(readwise_kw.pop("retry", None) or {}))
        return AppConfig(
            zotero=ZoteroConfig(**raw["zotero"]),
            readwise=ReadwiseConfig(retry=retry_config, **readwise_kw),
            sync=SyncConfig(**(raw.get("sync") or {})),
            state=StateConfig(**(raw.get("state") or {})),
        )
    except TypeError as e:
        # Unknown or missing keys in a config group
        raise ConfigError(f"Invalid configuration: {e}") from e


def build_request(cfg: AppConfig, token: str) -> SyncRequest:
    """Build the sync request from the configured scope."""
    if cfg.sync.scope == "collection":
        scope = SyncScope(kind="collection", collection_key=cfg.sync.scope_target)
    elif cfg.sync.scope == "items":
        scope = SyncScope(kind="items", item_keys=tuple(cfg.sync.item_keys))
    else:
        scope = SyncScope(kind="library")
    return SyncRequest(scope=scope, token=token)


def build_orchestrator(
    cfg: AppConfig,
    logger: logging.Logger,
    zotero_client: ZoteroClient,
    readwise_client: ReadwiseClient,
) -> SyncOrchestrator:
    """Wire collector, mapper, sender and state store into an orchestrator."""
    logger.info(f"Using state directory: {cfg.state.state_dir}")
    return SyncOrchestrator(
        collector=AnnotationCollector(zotero_client, chunk_size=cfg.sync.chunk_size),
        mapper=HighlightMapper(
            zotero_client,
            max_text_length=cfg.sync.max_text_length,
            color_tags=cfg.sync.color_tags,
        ),
        sender=HighlightSender(
            readwise_client,
            batch_size=cfg.readwise.batch_size,
            retry_config=cfg.readwise.retry,
        ),
        state_store=JsonFileStateStore(cfg.state),
        config=cfg.sync,
    )


@hydra.main(version_base=None, config_path="conf", config_name="config")
def main(cfg: DictConfig) -> int:
    """Main entry point for the sync.

    Args:
        cfg: Hydra configuration object

    Returns:
        Exit code: 0 for success, 1 for partial failure, 2 for complete
        failure, 3 for configuration or fatal errors
    """
    register_configs()

    logger = logging.getLogger(__name__)
    log_startup(logger, "Starting Zotero → Readwise sync")

    readwise_client: ReadwiseClient | None = None
    try:
        app_cfg = build_app_config(cfg)
        token = app_cfg.readwise.require_token()
        logger.info(f"Using Readwise token {mask_token(token)}")

        logger.info("Initializing Zotero client...")
        zotero_client = ZoteroClient(app_cfg.zotero)
        readwise_client = ReadwiseClient(app_cfg.readwise)

        if app_cfg.readwise.validate_token and not readwise_client.validate_token(
            token
        ):
            raise ConfigError(
                "Readwise rejected the API token. Get a valid token from "
                "https://readwise.io/access_token"
            )

        orchestrator = build_orchestrator(
            app_cfg, logger, zotero_client, readwise_client
        )
        request = build_request(app_cfg, token)

        # Route to appropriate command based on dry_run flag
        if app_cfg.sync.dry_run:
            return dry_run_command(app_cfg, logger, orchestrator, request)
        return sync_command(app_cfg, logger, orchestrator, request)

    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 3
    except (ZoteroClientError, ReadwiseClientError, SyncError) as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 3
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 3
    finally:
        if readwise_client is not None:
            readwise_client.close()


if __name__ == "__main__":
    sys.exit(main())  # type: ignore[call-arg]
