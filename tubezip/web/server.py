"""
The aiohttp application exposing the parse, download and job-status endpoints.
"""

import asyncio
import json
import logging
from typing import Any

from aiohttp import hdrs, web
from pydantic import TypeAdapter, ValidationError

from tubezip.api.client import YouTubeClient
from tubezip.core.orchestrator import BatchOrchestrator
from tubezip.core.single import SingleDownload
from tubezip.exceptions import (
    InputError,
    ResolverError,
    RetrievalError,
    SetupError,
    TubezipError,
)
from tubezip.media.runner import YtDlpRunner
from tubezip.models.config import ServerConfig
from tubezip.models.item import Item, Mode
from tubezip.storage.jobs import JobRegistry
from tubezip.storage.session import SessionDirectory
from tubezip.utils.filename import content_disposition
from tubezip.utils.structured_logger import BatchLogger, create_structured_logger

log = logging.getLogger(__name__)

ARCHIVE_NAME = "downloads.zip"
JOB_ID_HEADER = "X-Job-Id"
DISCONNECT_POLL_SECONDS = 0.5
MAX_REQUEST_SIZE = 8 * 1024 * 1024

CONFIG_KEY = web.AppKey("config", ServerConfig)
REGISTRY_KEY = web.AppKey("registry", JobRegistry)
RUNNER_KEY = web.AppKey("runner", YtDlpRunner)
RESOLVER_KEY = web.AppKey("resolver", YouTubeClient)
BATCH_LOGGER_KEY = web.AppKey("batch_logger", BatchLogger)

# Checked in order, so subclasses must come before their bases
ERROR_STATUS: list[tuple[type[TubezipError], int]] = [
    (InputError, 400),
    (ResolverError, 502),
    (RetrievalError, 500),
    (SetupError, 500),
    (TubezipError, 500),
]

_items_adapter = TypeAdapter(list[Item])


def json_error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Turns application errors raised before streaming into JSON responses."""
    try:
        return await handler(request)
    except TubezipError as e:
        status = next(code for cls, code in ERROR_STATUS if isinstance(e, cls))
        if status >= 500:
            log.error(f"[red]✗ {request.method} {request.path} failed: {e}[/red]")
        else:
            log.info(f"{request.method} {request.path} rejected: {e}")
        return json_error(str(e) or "Request failed.", status)


async def _read_body(request: web.Request) -> dict[str, Any]:
    """Reads a JSON or form body into a plain dictionary."""
    if request.content_type == "application/json":
        try:
            body = await request.json()
        except ValueError as e:
            raise InputError("Invalid JSON body.") from e
    elif request.can_read_body:
        body = dict(await request.post())
    else:
        body = {}
    if not isinstance(body, dict):
        raise InputError("Request body must be an object.")
    return body


def _parse_mode(value: Any) -> Mode:
    try:
        return Mode(value)
    except ValueError:
        raise InputError("Invalid parameters: mode must be 'audio' or 'video'.") from None


async def _read_batch_request(
    request: web.Request,
) -> tuple[list[Item], Mode, str | None]:
    """
    Accepts `{items, mode, jobId}` as a JSON body, or the same object
    serialized into the `payload` field of a form.
    """
    body = await _read_body(request)
    if request.content_type != "application/json" and "payload" in body:
        try:
            body = json.loads(body["payload"])
        except (TypeError, ValueError) as e:
            raise InputError("Invalid payload.") from e
        if not isinstance(body, dict):
            raise InputError("Invalid payload.")

    raw_items = body.get("items")
    if isinstance(raw_items, str):
        # Plain form fields carry the item list as a JSON string
        try:
            raw_items = json.loads(raw_items)
        except ValueError as e:
            raise InputError("Invalid parameters: 'items' is not valid JSON.") from e
    if not isinstance(raw_items, list) or not raw_items:
        raise InputError("Invalid parameters: 'items' must be a non-empty list.")
    mode = _parse_mode(body.get("mode"))
    try:
        items = _items_adapter.validate_python(raw_items)
    except ValidationError as e:
        raise InputError(f"Invalid parameters: {e.error_count()} invalid item(s).") from e

    job_id = body.get("jobId")
    return items, mode, str(job_id) if job_id else None


async def _watch_disconnect(request: web.Request, on_disconnect) -> None:
    """Calls `on_disconnect` once the client's connection is gone."""
    while True:
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)
        transport = request.transport
        if transport is None or transport.is_closing():
            on_disconnect()
            return


async def parse_handler(request: web.Request) -> web.Response:
    body = await _read_body(request)
    url = body.get("url")
    if not url:
        raise InputError("Missing url.")
    resolved = await request.app[RESOLVER_KEY].resolve(str(url))
    return web.json_response(resolved.model_dump(mode="json"))


async def download_one_handler(request: web.Request) -> web.StreamResponse:
    config = request.app[CONFIG_KEY]
    body = await _read_body(request)
    url = body.get("url")
    mode = _parse_mode(body.get("mode"))
    if not url:
        raise InputError("Invalid parameters: missing url.")

    download = SingleDownload(
        str(url),
        mode,
        request.app[RUNNER_KEY],
        SessionDirectory(config.temp_root),
        title=body.get("title") or None,
        batch_logger=request.app[BATCH_LOGGER_KEY],
        chunk_size=config.chunk_size,
    )
    filename = await download.fetch()

    response = web.StreamResponse(
        headers={
            hdrs.CONTENT_TYPE: "application/octet-stream",
            hdrs.CONTENT_DISPOSITION: content_disposition(filename),
        }
    )
    response.content_length = download.size
    try:
        await response.prepare(request)
        await download.stream(response.write)
        await response.write_eof()
    except ConnectionError as e:
        log.info(f"Client disconnected during single download of {url}: {e}")
    finally:
        download.cleanup()
    return response


async def download_all_handler(request: web.Request) -> web.StreamResponse:
    config = request.app[CONFIG_KEY]
    items, mode, job_id = await _read_batch_request(request)

    orchestrator = BatchOrchestrator(
        items,
        mode,
        request.app[RUNNER_KEY],
        request.app[REGISTRY_KEY],
        SessionDirectory(config.temp_root),
        job_id=job_id,
        batch_logger=request.app[BATCH_LOGGER_KEY],
        kill_grace_seconds=config.kill_grace_seconds,
        compression_level=config.zip_compression_level,
        chunk_size=config.chunk_size,
    )
    response = web.StreamResponse(
        headers={
            hdrs.CONTENT_TYPE: "application/zip",
            hdrs.CONTENT_DISPOSITION: content_disposition(ARCHIVE_NAME),
            JOB_ID_HEADER: orchestrator.job_id,
        }
    )
    orchestrator.prepare(response.write)

    watcher = asyncio.create_task(_watch_disconnect(request, orchestrator.cancel))
    try:
        await response.prepare(request)
        await orchestrator.run()
        if not orchestrator.cancelled:
            await response.write_eof()
            orchestrator.complete()
    except ConnectionError:
        orchestrator.cancel()
    except asyncio.CancelledError:
        orchestrator.cancel()
        raise
    except Exception as e:
        # The archive is left without a central directory
        orchestrator.fail(e)
        log.error(f"[red]✗ Batch {orchestrator.job_id} aborted: {e}[/red]")
        response.force_close()
    finally:
        watcher.cancel()
    return response


async def job_status_handler(request: web.Request) -> web.Response:
    job_id = request.query.get("jobId")
    if not job_id:
        raise InputError("Missing jobId.")
    status = request.app[REGISTRY_KEY].get_status(job_id)
    return web.json_response({"status": status.value})


async def health_handler(request: web.Request) -> web.Response:
    config = request.app[CONFIG_KEY]
    return web.json_response({"ok": True, "ytApi": config.has_api_key})


async def _close_resolver(app: web.Application) -> None:
    await app[RESOLVER_KEY].close()


def create_app(
    config: ServerConfig,
    runner: YtDlpRunner | None = None,
    resolver: YouTubeClient | None = None,
    registry: JobRegistry | None = None,
    batch_logger: BatchLogger | None = None,
) -> web.Application:
    """Builds the application. Collaborators can be injected for tests."""
    app = web.Application(
        middlewares=[error_middleware], client_max_size=MAX_REQUEST_SIZE
    )
    app[CONFIG_KEY] = config
    app[RUNNER_KEY] = runner or YtDlpRunner(
        config.ytdlp_binary, kill_grace_seconds=config.kill_grace_seconds
    )
    app[RESOLVER_KEY] = resolver or YouTubeClient(config.yt_api_key)
    app[REGISTRY_KEY] = registry or JobRegistry(config.job_ttl_seconds)
    app[BATCH_LOGGER_KEY] = batch_logger or create_structured_logger()[1]
    app.on_cleanup.append(_close_resolver)

    app.router.add_post("/api/parse", parse_handler)
    app.router.add_post("/api/download-one", download_one_handler)
    app.router.add_post("/api/download-all", download_all_handler)
    app.router.add_get("/api/job-status", job_status_handler)
    app.router.add_get("/api/health", health_handler)
    return app


def run_server(config: ServerConfig, batch_logger: BatchLogger | None = None) -> None:
    """Serves the application until interrupted."""
    if not config.has_api_key:
        log.warning(
            "[yellow]YT_API_KEY is not set. YouTube lookups will not work.[/yellow]"
        )
    app = create_app(config, batch_logger=batch_logger)
    log.info(f"Server running on http://{config.host}:{config.port}")
    web.run_app(
        app,
        host=config.host,
        port=config.port,
        handler_cancellation=True,
        print=None,
    )
