"""Wire-level tests for the debrid providers (respx-mocked)."""

from __future__ import annotations

import httpx
import pytest
import respx
from structlog.testing import capture_logs

from jackettio.domain.entities.errors import DebridError, DebridErrorKind
from jackettio.domain.entities.stremio import StreamQuality, TorrentSource
from jackettio.infrastructure.debrid import AllDebrid, DebridLink, Premiumize, RealDebrid

_RD = "https://api.real-debrid.com/rest/1.0"
_AD = "https://api.alldebrid.com/v4"
_DL = "https://debrid-link.com/api/v2"
_PM = "https://www.premiumize.me/api"

_HASH = "a" * 40
_MAGNET = f"magnet:?xt=urn:btih:{_HASH}&dn=Movie"


async def _stream_records(provider, releases, request) -> list:
    return [
        r
        async for r in provider.resolve_streams(
            releases,
            request=request,
            link_for=lambda rel: f"http://addon/dl/{rel.torrent_id}",
            max_results=10,
            quality_threshold=StreamQuality.UNKNOWN,
            include_uncached=True,
        )
    ]


class TestRealDebrid:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_instant_availability(self, release_factory, movie_request) -> None:
        cached, uncached = release_factory(1, info_hash=_HASH), release_factory(2)
        route = respx.get(url__startswith=f"{_RD}/torrents/instantAvailability/").respond(
            200,
            json={
                _HASH.upper(): {"rd": [{"1": {"filename": "Movie.mkv", "filesize": 1}}]},
                uncached.info_hash: [],
            },
        )

        async with httpx.AsyncClient() as client:
            provider = RealDebrid(client, api_key="rd-key")
            records = await _stream_records(provider, [cached, uncached], movie_request)

        assert {r.torrent_id: r.cached for r in records} == {"t1": True, "t2": False}
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer rd-key"
        assert request.url.path.endswith(f"/{_HASH}/{uncached.info_hash}")

    @respx.mock
    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        ("status", "body", "kind"),
        [
            (401, {"error": "bad_token", "error_code": 8}, DebridErrorKind.EXPIRED_API_KEY),
            (401, None, DebridErrorKind.EXPIRED_API_KEY),
            (403, {"error": "permission_denied", "error_code": 9}, DebridErrorKind.ACCESS_DENIED),
            (403, {"error": "premium_only", "error_code": 20}, DebridErrorKind.NOT_PREMIUM),
            (403, {"error": "two_factor", "error_code": 10}, DebridErrorKind.TWO_FACTOR_AUTH),
            (503, None, DebridErrorKind.UNCLASSIFIED),
        ],
    )
    async def test_error_mapping(
        self, status, body, kind, release_factory, movie_request
    ) -> None:
        respx.get(url__startswith=f"{_RD}/torrents/instantAvailability/").respond(
            status, json=body
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(DebridError) as exc_info:
                await _stream_records(
                    RealDebrid(client, api_key="rd-key"), [release_factory(1)], movie_request
                )

        assert exc_info.value.kind is kind
        assert exc_info.value.provider == "realdebrid"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_download_flow(self, movie_request) -> None:
        respx.post(f"{_RD}/torrents/addMagnet").respond(201, json={"id": "ABC"})
        downloaded = {
            "status": "downloaded",
            "files": [
                {"id": 1, "path": "/Movie/Movie.2020.1080p.mkv", "bytes": 4_000, "selected": 1},
                {"id": 2, "path": "/Movie/sample.mkv", "bytes": 10, "selected": 1},
                {"id": 3, "path": "/Movie/info.nfo", "bytes": 5, "selected": 0},
            ],
            "links": ["https://real-debrid.com/d/L1", "https://real-debrid.com/d/L2"],
        }
        respx.get(f"{_RD}/torrents/info/ABC").mock(
            side_effect=[
                httpx.Response(200, json={"status": "waiting_files_selection"}),
                httpx.Response(200, json=downloaded),
            ]
        )
        select = respx.post(f"{_RD}/torrents/selectFiles/ABC").respond(204)
        unrestrict = respx.post(f"{_RD}/unrestrict/link").respond(
            200, json={"download": "https://cdn.real-debrid.com/Movie.mkv"}
        )

        async with httpx.AsyncClient() as client:
            provider = RealDebrid(client, api_key="rd-key", ip="203.0.113.9")
            url = await provider.resolve_download(
                TorrentSource("t1", magnet_uri=_MAGNET, info_hash=_HASH), movie_request
            )

        assert url == "https://cdn.real-debrid.com/Movie.mkv"
        assert select.called
        body = unrestrict.calls.last.request.content.decode()
        assert "L1" in body
        assert "ip=203.0.113.9" in body

    @respx.mock
    @pytest.mark.asyncio()
    async def test_still_downloading_is_not_ready(self, movie_request) -> None:
        respx.post(f"{_RD}/torrents/addMagnet").respond(201, json={"id": "ABC"})
        respx.get(f"{_RD}/torrents/info/ABC").respond(
            200, json={"status": "downloading", "progress": 12}
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(DebridError) as exc_info:
                await RealDebrid(client, api_key="k").resolve_download(
                    TorrentSource("t1", magnet_uri=_MAGNET), movie_request
                )
        assert exc_info.value.kind is DebridErrorKind.NOT_READY

    @respx.mock
    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        "exc", [httpx.ConnectError("refused"), httpx.ReadTimeout("slow")]
    )
    async def test_transport_failures_are_unclassified(self, exc, movie_request) -> None:
        respx.post(f"{_RD}/torrents/addMagnet").mock(side_effect=exc)

        async with httpx.AsyncClient() as client:
            with pytest.raises(DebridError) as exc_info:
                await RealDebrid(client, api_key="k").resolve_download(
                    TorrentSource("t1", magnet_uri=_MAGNET), movie_request
                )
        assert exc_info.value.kind is DebridErrorKind.UNCLASSIFIED

    @pytest.mark.asyncio()
    async def test_source_without_magnet_or_file(self, movie_request) -> None:
        async with httpx.AsyncClient() as client:
            with pytest.raises(DebridError):
                await RealDebrid(client, api_key="k").resolve_download(
                    TorrentSource("t1"), movie_request
                )


class TestAllDebrid:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_instant(self, release_factory, movie_request) -> None:
        route = respx.get(url__startswith=f"{_AD}/magnet/instant").respond(
            200,
            json={
                "status": "success",
                "data": {
                    "magnets": [
                        {"hash": _HASH.upper(), "instant": True},
                        {"hash": f"{2:040x}", "instant": False},
                    ]
                },
            },
        )

        async with httpx.AsyncClient() as client:
            records = await _stream_records(
                AllDebrid(client, api_key="ad-key"),
                [release_factory(1, info_hash=_HASH), release_factory(2)],
                movie_request,
            )

        assert {r.torrent_id: r.cached for r in records} == {"t1": True, "t2": False}
        params = route.calls.last.request.url.params
        assert params["apikey"] == "ad-key"
        assert params["agent"] == "jackettio"
        assert params.get_list("magnets[]") == [_HASH, f"{2:040x}"]

    @respx.mock
    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        ("code", "kind"),
        [
            ("AUTH_BAD_APIKEY", DebridErrorKind.EXPIRED_API_KEY),
            ("AUTH_BLOCKED", DebridErrorKind.TWO_FACTOR_AUTH),
            ("MUST_BE_PREMIUM", DebridErrorKind.NOT_PREMIUM),
            ("AUTH_USER_BANNED", DebridErrorKind.ACCESS_DENIED),
            ("MAGNET_INVALID_URI", DebridErrorKind.UNCLASSIFIED),
        ],
    )
    async def test_error_codes(self, code, kind, release_factory, movie_request) -> None:
        respx.get(url__startswith=f"{_AD}/magnet/instant").respond(
            200, json={"status": "error", "error": {"code": code, "message": "nope"}}
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(DebridError) as exc_info:
                await _stream_records(
                    AllDebrid(client, api_key="ad-key"), [release_factory(1)], movie_request
                )
        assert exc_info.value.kind is kind

    @respx.mock
    @pytest.mark.asyncio()
    async def test_download_flow(self, movie_request) -> None:
        respx.get(url__startswith=f"{_AD}/magnet/upload").respond(
            200, json={"status": "success", "data": {"magnets": [{"id": 7}]}}
        )
        respx.get(url__startswith=f"{_AD}/magnet/status").respond(
            200,
            json={
                "status": "success",
                "data": {
                    "magnets": {
                        "id": 7,
                        "status": "Ready",
                        "statusCode": 4,
                        "links": [
                            {"filename": "Movie.2020.1080p.mkv", "size": 4_000, "link": "https://uptobox/1"},
                            {"filename": "Movie.srt", "size": 9_000, "link": "https://uptobox/2"},
                        ],
                    }
                },
            },
        )
        unlock = respx.get(url__startswith=f"{_AD}/link/unlock").respond(
            200, json={"status": "success", "data": {"link": "https://cdn.alldebrid.com/x.mkv"}}
        )

        async with httpx.AsyncClient() as client:
            url = await AllDebrid(client, api_key="ad-key").resolve_download(
                TorrentSource("t1", magnet_uri=_MAGNET), movie_request
            )

        assert url == "https://cdn.alldebrid.com/x.mkv"
        assert unlock.calls.last.request.url.params["link"] == "https://uptobox/1"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_processing_magnet_is_not_ready(self, movie_request) -> None:
        respx.get(url__startswith=f"{_AD}/magnet/upload").respond(
            200, json={"status": "success", "data": {"magnets": [{"id": 7}]}}
        )
        respx.get(url__startswith=f"{_AD}/magnet/status").respond(
            200,
            json={
                "status": "success",
                "data": {"magnets": {"id": 7, "status": "Downloading", "statusCode": 1}},
            },
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(DebridError) as exc_info:
                await AllDebrid(client, api_key="ad-key").resolve_download(
                    TorrentSource("t1", magnet_uri=_MAGNET), movie_request
                )
        assert exc_info.value.kind is DebridErrorKind.NOT_READY

    @respx.mock
    @pytest.mark.asyncio()
    async def test_transport_error_does_not_log_api_key(self, movie_request) -> None:
        respx.get(url__startswith=f"{_AD}/magnet/upload").mock(side_effect=httpx.ConnectError)

        with capture_logs() as logs:
            async with httpx.AsyncClient() as client:
                with pytest.raises(DebridError) as exc_info:
                    await AllDebrid(client, api_key="AD-SECRET-KEY").resolve_download(
                        TorrentSource("t1", magnet_uri=_MAGNET), movie_request
                    )

        assert exc_info.value.kind is DebridErrorKind.UNCLASSIFIED
        assert any(e["event"] == "alldebrid_transport_error" for e in logs)
        assert "AD-SECRET-KEY" not in repr(logs)
        assert "AD-SECRET-KEY" not in exc_info.value.detail


class TestDebridLink:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_cached_value_dict(self, release_factory, movie_request) -> None:
        respx.get(url__startswith=f"{_DL}/seedbox/cached").respond(
            200, json={"success": True, "value": {_HASH: {"name": "Movie", "files": []}}}
        )

        async with httpx.AsyncClient() as client:
            records = await _stream_records(
                DebridLink(client, api_key="dl-key"),
                [release_factory(1, info_hash=_HASH), release_factory(2)],
                movie_request,
            )
        assert {r.torrent_id: r.cached for r in records} == {"t1": True, "t2": False}

    @respx.mock
    @pytest.mark.asyncio()
    async def test_nothing_cached_returns_list(self, release_factory, movie_request) -> None:
        respx.get(url__startswith=f"{_DL}/seedbox/cached").respond(
            200, json={"success": True, "value": []}
        )

        async with httpx.AsyncClient() as client:
            records = await _stream_records(
                DebridLink(client, api_key="dl-key"), [release_factory(1)], movie_request
            )
        assert [r.cached for r in records] == [False]

    @respx.mock
    @pytest.mark.asyncio()
    async def test_bad_token(self, release_factory, movie_request) -> None:
        respx.get(url__startswith=f"{_DL}/seedbox/cached").respond(
            401, json={"success": False, "error": "badToken"}
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(DebridError) as exc_info:
                await _stream_records(
                    DebridLink(client, api_key="dl-key"), [release_factory(1)], movie_request
                )
        assert exc_info.value.kind is DebridErrorKind.EXPIRED_API_KEY

    @respx.mock
    @pytest.mark.asyncio()
    async def test_partial_download_is_not_ready(self, movie_request) -> None:
        respx.post(f"{_DL}/seedbox/add").respond(
            200,
            json={
                "success": True,
                "value": {
                    "downloadPercent": 40,
                    "files": [
                        {"name": "Movie.mkv", "size": 10, "downloadPercent": 40, "downloadUrl": "x"}
                    ],
                },
            },
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(DebridError) as exc_info:
                await DebridLink(client, api_key="dl-key").resolve_download(
                    TorrentSource("t1", magnet_uri=_MAGNET), movie_request
                )
        assert exc_info.value.kind is DebridErrorKind.NOT_READY

    @respx.mock
    @pytest.mark.asyncio()
    async def test_finished_download_returns_link(self, movie_request) -> None:
        respx.post(f"{_DL}/seedbox/add").respond(
            200,
            json={
                "success": True,
                "value": {
                    "downloadPercent": 100,
                    "files": [
                        {
                            "name": "Movie.2020.1080p.mkv",
                            "size": 4_000,
                            "downloadPercent": 100,
                            "downloadUrl": "https://dl.debrid-link.com/movie.mkv",
                        }
                    ],
                },
            },
        )

        async with httpx.AsyncClient() as client:
            url = await DebridLink(client, api_key="dl-key").resolve_download(
                TorrentSource("t1", magnet_uri=_MAGNET), movie_request
            )
        assert url == "https://dl.debrid-link.com/movie.mkv"


class TestPremiumize:
    @pytest.mark.parametrize(
        ("message", "kind"),
        [
            ("Not logged in.", DebridErrorKind.EXPIRED_API_KEY),
            ("This feature requires a premium account", DebridErrorKind.NOT_PREMIUM),
            ("Your account has been banned", DebridErrorKind.ACCESS_DENIED),
            ("Your IP is not allowed", DebridErrorKind.ACCESS_DENIED),
            ("Something unexpected happened", DebridErrorKind.UNCLASSIFIED),
        ],
    )
    def test_message_classification(self, message, kind) -> None:
        provider = Premiumize(httpx.AsyncClient(), api_key="pm-key")
        assert provider._classify(200, {"status": "error", "message": message}) is kind

    def test_success_is_not_an_error(self) -> None:
        provider = Premiumize(httpx.AsyncClient(), api_key="pm-key")
        assert provider._classify(200, {"status": "success"}) is None
        assert provider._classify(401, None) is DebridErrorKind.EXPIRED_API_KEY

    @respx.mock
    @pytest.mark.asyncio()
    async def test_cache_check(self, release_factory, movie_request) -> None:
        route = respx.get(url__startswith=f"{_PM}/cache/check").respond(
            200, json={"status": "success", "response": [True, False]}
        )

        async with httpx.AsyncClient() as client:
            records = await _stream_records(
                Premiumize(client, api_key="pm-key"),
                [release_factory(1, info_hash=_HASH), release_factory(2)],
                movie_request,
            )

        assert {r.torrent_id: r.cached for r in records} == {"t1": True, "t2": False}
        assert route.calls.last.request.url.params["apikey"] == "pm-key"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_cached_magnet_uses_directdl(self, movie_request) -> None:
        respx.get(url__startswith=f"{_PM}/cache/check").respond(
            200, json={"status": "success", "response": [True]}
        )
        respx.post(url__startswith=f"{_PM}/transfer/directdl").respond(
            200,
            json={
                "status": "success",
                "content": [
                    {"path": "Movie/Movie.2020.1080p.mkv", "size": "4000", "link": "https://pm/1"},
                    {"path": "Movie/sample.mkv", "size": "12", "link": "https://pm/2"},
                ],
            },
        )

        async with httpx.AsyncClient() as client:
            url = await Premiumize(client, api_key="pm-key").resolve_download(
                TorrentSource("t1", magnet_uri=_MAGNET), movie_request
            )
        assert url == "https://pm/1"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_uncached_magnet_creates_transfer(self, movie_request) -> None:
        respx.get(url__startswith=f"{_PM}/cache/check").respond(
            200, json={"status": "success", "response": [False]}
        )
        create = respx.post(url__startswith=f"{_PM}/transfer/create").respond(
            200, json={"status": "success", "id": "tr1"}
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(DebridError) as exc_info:
                await Premiumize(client, api_key="pm-key").resolve_download(
                    TorrentSource("t1", magnet_uri=_MAGNET), movie_request
                )
        assert exc_info.value.kind is DebridErrorKind.NOT_READY
        assert create.called

    @respx.mock
    @pytest.mark.asyncio()
    async def test_torrent_file_goes_through_transfer_list(self, movie_request) -> None:
        respx.post(url__startswith=f"{_PM}/transfer/create").respond(
            200, json={"status": "success", "id": "tr1"}
        )
        respx.get(url__startswith=f"{_PM}/transfer/list").respond(
            200,
            json={
                "status": "success",
                "transfers": [
                    {"id": "other", "status": "running"},
                    {"id": "tr1", "status": "finished", "folder_id": "f1"},
                ],
            },
        )
        folder = respx.get(url__startswith=f"{_PM}/folder/list").respond(
            200,
            json={
                "status": "success",
                "content": [
                    {"type": "folder", "name": "Subs", "size": 0},
                    {"type": "file", "name": "Movie.mkv", "size": 4_000, "link": "https://pm/f"},
                ],
            },
        )

        async with httpx.AsyncClient() as client:
            url = await Premiumize(client, api_key="pm-key").resolve_download(
                TorrentSource("t1", torrent_file=b"d4:infod4:name5:Moviee"), movie_request
            )
        assert url == "https://pm/f"
        assert folder.calls.last.request.url.params["id"] == "f1"
