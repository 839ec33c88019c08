"""Download endpoint: resolves the debrid link when the player follows a stream."""

from __future__ import annotations

from typing import cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from jackettio.domain.entities.errors import (
    DebridError,
    DebridErrorKind,
    MalformedConfig,
    TorrentNotFound,
    UnknownProvider,
)
from jackettio.interfaces.api.client_ip import client_ip
from jackettio.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["download"])

ERROR_VIDEO = "/videos/error.mp4"


def error_video(kind: DebridErrorKind) -> str:
    """Redirect target explaining a provider failure to the viewer."""
    match kind:
        case DebridErrorKind.NOT_READY:
            return "/videos/not_ready.mp4"
        case DebridErrorKind.EXPIRED_API_KEY:
            return "/videos/expired_api_key.mp4"
        case DebridErrorKind.NOT_PREMIUM:
            return "/videos/not_premium.mp4"
        case DebridErrorKind.ACCESS_DENIED:
            return "/videos/access_denied.mp4"
        case DebridErrorKind.TWO_FACTOR_AUTH:
            return "/videos/two_factor_auth.mp4"
        case DebridErrorKind.UNCLASSIFIED:
            return ERROR_VIDEO


@router.api_route(
    "/{user_config}/download/{media_type}/{media_id}/{torrent_id}",
    methods=["GET", "HEAD"],
)
async def download(
    request: Request,
    user_config: str,
    media_type: str,
    media_id: str,
    torrent_id: str,
) -> RedirectResponse:
    """Redirect to the direct debrid URL, or to a video explaining the failure."""
    state = cast(AppState, request.app.state)

    try:
        config = state.codec.decode(user_config)
        if config is None:
            raise MalformedConfig("empty config blob")
        config = config.with_ip(
            client_ip(request, trust_proxy=state.config.rate_limit.trust_proxy)
        )
        url = await state.download_resolver.get_download(
            config, media_type, media_id, torrent_id
        )
    except DebridError as e:
        log.warning(
            "download_debrid_error",
            media_id=media_id,
            torrent_id=torrent_id,
            provider=e.provider,
            kind=e.kind.value,
            detail=e.detail,
        )
        url = error_video(e.kind)
    except (MalformedConfig, UnknownProvider, TorrentNotFound) as e:
        log.warning(
            "download_failed",
            media_id=media_id,
            torrent_id=torrent_id,
            error_type=type(e).__name__,
            error=str(e),
        )
        url = ERROR_VIDEO
    except Exception:
        log.error("download_unexpected_error", media_id=media_id, torrent_id=torrent_id, exc_info=True)
        url = ERROR_VIDEO

    return RedirectResponse(url=url, status_code=302)
