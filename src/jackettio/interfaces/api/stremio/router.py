"""Stremio addon API endpoints (configure, manifest, icon, stream)."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

import markdown
import structlog
from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, RedirectResponse

from jackettio.domain.entities.errors import (
    IndexerUnavailable,
    MalformedConfig,
    UnknownProvider,
)
from jackettio.infrastructure.stremio.stream_formatter import StreamFormatter
from jackettio.interfaces.api.client_ip import client_ip
from jackettio.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["stremio"])

_TEMPLATE = Path(__file__).resolve().parent.parent.parent / "templates" / "configure.html"

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "*",
}

CONFIGURE_MESSAGE = "ℹ Kindly configure this addon to access streams."


@lru_cache(maxsize=1)
def _load_template(path: Path) -> str:
    return path.read_text(encoding="utf-8")


@lru_cache(maxsize=1)
def _welcome_html(message: str) -> str:
    """Render the configured Markdown welcome message, followed by a divider."""
    if not message.strip():
        return ""
    html = markdown.markdown(message)
    return f'{html}<div class="my-4 border-top border-secondary-subtle"></div>'


def _base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def _formatter(state: AppState) -> StreamFormatter:
    languages = state.config.user_config.languages
    return StreamFormatter(
        state.config.addon.name,
        {lang["value"]: lang.get("emoji", "") or lang["value"] for lang in languages},
    )


def _build_manifest(state: AppState, base_url: str) -> dict[str, Any]:
    addon = state.config.addon
    return {
        "id": addon.id,
        "version": addon.version,
        "name": addon.name,
        "description": addon.description,
        "icon": f"{base_url}/icon",
        "resources": ["stream"],
        "types": ["movie", "series"],
        "idPrefixes": ["tt"],
        "catalogs": [],
        "behaviorHints": {"configurable": True},
    }


async def _configure_data(state: AppState, user_config: str) -> dict[str, Any]:
    try:
        indexers = [
            {"value": i.id, "label": i.title, "types": list(i.types)}
            for i in await state.indexer.list_indexers()
        ]
    except IndexerUnavailable as e:
        log.warning("configure_indexers_unavailable", error=str(e))
        indexers = []

    settings = state.config.user_config
    passkey = state.config.passkey
    return {
        "debrids": state.registry.list(),
        "addon": {"version": state.config.addon.version, "name": state.config.addon.name},
        "userConfig": user_config,
        "defaultUserConfig": settings.defaults,
        "qualities": settings.qualities,
        "languages": [
            {"value": lang["value"], "label": lang["label"]}
            for lang in settings.languages
            if lang["value"] != "multi"
        ],
        "sorts": settings.sorts,
        "indexers": indexers,
        "immutableUserConfigKeys": sorted(state.codec.immutable_keys),
        "passkey": (
            {"enabled": True, "infoUrl": passkey.info_url, "pattern": passkey.pattern}
            if passkey.enabled
            else {"enabled": False}
        ),
    }


@router.get("/")
async def index() -> RedirectResponse:
    return RedirectResponse(url="/configure", status_code=302)


@router.get("/icon")
async def icon(request: Request) -> FileResponse:
    state = cast(AppState, request.app.state)
    return FileResponse(
        state.icon.path,
        headers={"Cache-Control": "public, max-age=3600"},
    )


@router.get("/configure")
@router.get("/{user_config}/configure")
async def configure(request: Request, user_config: str = "") -> HTMLResponse:
    """Render the configuration page with its data injected."""
    state = cast(AppState, request.app.state)
    data = await _configure_data(state, user_config)
    html = (
        _load_template(_TEMPLATE)
        .replace("/** import-config */", f"const config = {json.dumps(data, indent=2)}")
        .replace("<!-- welcome-message -->", _welcome_html(state.config.addon.welcome_message))
    )
    return HTMLResponse(html)


@router.get("/manifest.json")
@router.get("/{user_config}/manifest.json")
async def manifest(request: Request, user_config: str = "") -> JSONResponse:
    """Serve the addon manifest; a configured URL names the debrid provider."""
    state = cast(AppState, request.app.state)
    content = _build_manifest(state, _base_url(request))

    if user_config:
        try:
            config = state.codec.decode(user_config)
            if config is not None:
                provider = state.registry.provider_class(config.debrid_id)
                content["name"] += f" {provider.short_name}"
        except (MalformedConfig, UnknownProvider) as e:
            log.info("manifest_config_ignored", error=str(e))

    return JSONResponse(content=content, headers=_CORS_HEADERS)


@router.get("/stream/{media_type}/{media_id}.json")
async def stream_unconfigured(request: Request, media_type: str, media_id: str) -> JSONResponse:
    state = cast(AppState, request.app.state)
    return JSONResponse(
        content={"streams": [_formatter(state).info(CONFIGURE_MESSAGE)]},
        headers=_CORS_HEADERS,
    )


@router.get("/{user_config}/stream/{media_type}/{media_id}.json")
async def stream(
    request: Request,
    user_config: str,
    media_type: str,
    media_id: str,
) -> JSONResponse:
    """List streams for a movie or episode.

    Never answers with an error status: a bad config, an unavailable
    indexer or a failing provider all degrade to a shorter list.
    """
    state = cast(AppState, request.app.state)
    formatter = _formatter(state)

    try:
        config = state.codec.decode(user_config)
    except MalformedConfig as e:
        log.info("stream_malformed_config", media_id=media_id, error=str(e))
        return JSONResponse(content={"streams": []}, headers=_CORS_HEADERS)

    if config is None:
        return JSONResponse(
            content={"streams": [formatter.info(CONFIGURE_MESSAGE)]},
            headers=_CORS_HEADERS,
        )

    config = config.with_ip(
        client_ip(request, trust_proxy=state.config.rate_limit.trust_proxy)
    )

    try:
        records = await state.orchestrator.get_streams(
            config,
            media_type,
            media_id,
            base_url=_base_url(request),
            raw_config=user_config,
        )
        streams = formatter.format_all(records)
    except Exception:
        log.error("stream_route_failed", media_id=media_id, exc_info=True)
        streams = []

    return JSONResponse(content={"streams": streams}, headers=_CORS_HEADERS)
