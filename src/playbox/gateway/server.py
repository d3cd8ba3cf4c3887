import json
from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel
import uvicorn

from playbox.bootstrap import create_playground
from playbox.config.config import PlayboxConfig, load_config
from playbox.errors import BusyError
from playbox.logging.diagnostic import diagnostic_logger as diag
from playbox.process.future import REJECTED, CommandFuture
from playbox.process.pipeline import Playground
from playbox.process.sink import Console


class FileEdit(BaseModel):
    content: str


def _log_outcome(step: str) -> Callable[[CommandFuture], None]:
    def _done(future: CommandFuture) -> None:
        if future.state != REJECTED:
            diag.debug(f"step {step} resolved")
        elif isinstance(future.error, BusyError):
            diag.debug(f"step {step} rejected: busy")
        else:
            diag.info(f"step {step} failed: {future.error}")
    return _done


def create_app(
    settings: Optional[PlayboxConfig] = None,
    playground: Optional[Playground] = None,
    prepare_on_startup: bool = True,
) -> FastAPI:
    settings = settings or load_config()
    if playground is None:
        console = Console(settings.console_history_lines, settings.subscriber_queue_size)
        playground = create_playground(settings, console)
    console = playground.runner.console

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        if prepare_on_startup:
            await playground.prepare()
        yield
        console.close()

    app = FastAPI(title="Playbox Gateway", lifespan=lifespan)
    app.state.playground = playground
    app.state.last_reload = None

    def _busy_response(step: str) -> Response:
        return JSONResponse({"accepted": False, "step": step, "error": "busy"}, status_code=409)

    def _trigger(step: str, start: Callable[[], CommandFuture]) -> Response:
        if playground.runner.busy:
            return _busy_response(step)
        start().add_done_callback(_log_outcome(step))
        return JSONResponse({"accepted": True, "step": step}, status_code=202)

    @app.get("/health")
    async def health():
        return {"status": "ok", "toolchain": settings.toolchain_dir}

    @app.get("/status")
    async def status():
        return {"busy": playground.runner.busy, "loading": console.loading}

    @app.post("/build")
    async def build():
        return _trigger("build", playground.build)

    @app.post("/run")
    async def run():
        return _trigger("run", playground.build_then_run)

    @app.post("/fmt")
    async def fmt():
        def _on_reload(contents: str) -> None:
            app.state.last_reload = contents

        return _trigger("fmt", lambda: playground.format_then_reload(_on_reload))

    @app.get("/file")
    async def read_file():
        try:
            content = await playground.read_source()
        except OSError as e:
            return JSONResponse({"error": str(e)}, status_code=404)
        return {"path": settings.source_file, "content": content}

    @app.put("/file")
    async def write_file(edit: FileEdit):
        ok = await playground.edited(lambda: edit.content)
        if not ok:
            return JSONResponse({"error": f"Failed to write {settings.source_file}"}, status_code=500)
        return Response(status_code=204)

    @app.get("/console")
    async def console_history():
        return {"lines": [line.to_dict() for line in console.history()]}

    @app.get("/console/stream")
    async def console_stream():
        queue = console.subscribe()
        backlog = console.history()

        def sse(event: str, data: Any) -> str:
            return f"event: {event}\ndata: {json.dumps(data)}\n\n"

        async def _stream():
            try:
                yield sse("loading", console.loading)
                for line in backlog:
                    yield sse("line", line.to_dict())
                last_seq = backlog[-1].seq if backlog else 0
                while True:
                    item = await queue.get()
                    if item is None:
                        break
                    kind, payload = item
                    if kind == "line":
                        if payload.seq <= last_seq:
                            continue
                        yield sse("line", payload.to_dict())
                    else:
                        yield sse(kind, payload)
            finally:
                console.unsubscribe(queue)

        return StreamingResponse(
            _stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    return app


def start_gateway(port: int = 3000, settings: Optional[PlayboxConfig] = None):
    settings = settings or load_config()
    app = create_app(settings)
    print(f"\nPlaybox Gateway running on http://localhost:{port}")
    print(f"   Toolchain: {settings.toolchain_dir}")
    print(f"   Workspace: {settings.workspace_dir}")
    print("   Endpoints: POST /build | POST /run | POST /fmt | GET/PUT /file | GET /console/stream | GET /status\n")

    uvicorn.run(app, host="0.0.0.0", port=port, log_level="warning")
