"""MP3 upload and static asset routes.

Uploaded tracks are written to the music directory as
``<epoch-ms>_<sanitized-name>`` and served back under ``/music/``. The
host page then plays them locally and streams them over its own peer
connections; the relay never touches the audio again.
"""

import asyncio
import logging
import re
import time

from aiohttp import BodyPartReader, hdrs, web

from src.relay.config import HTTPConfig
from src.relay.metrics import MetricsCollector

logger = logging.getLogger(__name__)

MP3_CONTENT_TYPES: frozenset[str] = frozenset({"audio/mpeg", "audio/mp3"})
UPLOAD_FIELD = "file"
CHUNK_SIZE = 64 * 1024

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


class UploadError(Exception):
    """Rejected upload; the message is returned to the client."""


def sanitize_filename(name: str) -> str:
    """Replace every character outside [a-zA-Z0-9._-] with an underscore."""
    return _UNSAFE_CHARS.sub("_", name)


def is_mp3(filename: str, content_type: str | None) -> bool:
    """Accept by MIME type or by .mp3 suffix."""
    return (content_type or "").lower() in MP3_CONTENT_TYPES or filename.lower().endswith(".mp3")


class UploadHandler:
    """Handles ``POST /api/upload-mp3`` multipart uploads."""

    def __init__(self, config: HTTPConfig, metrics: MetricsCollector) -> None:
        self.music_dir = config.music_dir
        self.max_bytes = config.max_upload_bytes
        self.metrics = metrics

    async def upload_mp3(self, request: web.Request) -> web.Response:
        try:
            filename = await self._store(request)
        except UploadError as e:
            logger.info("Upload rejected", extra={"error": str(e)})
            return web.json_response({"error": str(e)}, status=400)

        self.metrics.record_upload()
        logger.info("Upload stored", extra={"upload_filename": filename})
        return web.json_response({"url": f"/music/{filename}", "filename": filename})

    async def _store(self, request: web.Request) -> str:
        if not request.content_type.startswith("multipart/"):
            raise UploadError("No file uploaded")

        reader = await request.multipart()
        part = None
        async for candidate in reader:
            if isinstance(candidate, BodyPartReader) and candidate.name == UPLOAD_FIELD:
                part = candidate
                break
            # Skip unrelated form fields
            await candidate.release()

        if part is None or not part.filename:
            raise UploadError("No file uploaded")

        if not is_mp3(part.filename, part.headers.get(hdrs.CONTENT_TYPE)):
            raise UploadError("Only MP3 files are allowed")

        filename = f"{int(time.time() * 1000)}_{sanitize_filename(part.filename)}"
        target = self.music_dir / filename

        size = 0
        f = await asyncio.to_thread(open, target, "wb")
        try:
            try:
                while chunk := await part.read_chunk(CHUNK_SIZE):
                    size += len(chunk)
                    if size > self.max_bytes:
                        raise UploadError("File too large")
                    # Disk writes stay off the event loop
                    await asyncio.to_thread(f.write, chunk)
            finally:
                await asyncio.to_thread(f.close)
        except UploadError:
            target.unlink(missing_ok=True)
            raise

        return filename


def setup_media_routes(
    app: web.Application, config: HTTPConfig, metrics: MetricsCollector
) -> None:
    """Register upload, music and public asset routes.

    Creates the music directory if missing. Public assets are only served
    when the directory exists. Must be called after all other routes since
    the public directory is mounted at ``/``.

    Args:
        app: aiohttp Application instance
        config: HTTP configuration
        metrics: Metrics collector for upload counts
    """
    config.music_dir.mkdir(parents=True, exist_ok=True)

    handler = UploadHandler(config, metrics)
    app.router.add_post("/api/upload-mp3", handler.upload_mp3)
    app.router.add_static("/music", config.music_dir)

    public_dir = config.public_dir
    if public_dir.is_dir():

        async def index(request: web.Request) -> web.StreamResponse:
            index_file = public_dir / "index.html"
            if not index_file.is_file():
                raise web.HTTPNotFound()
            return web.FileResponse(index_file)

        app.router.add_get("/", index)
        app.router.add_static("/", public_dir)
        logger.info("Serving public assets", extra={"public_dir": str(public_dir)})

    logger.info("Media routes configured", extra={"music_dir": str(config.music_dir)})
