from __future__ import annotations

import argparse
from pathlib import Path

from .config import get_settings
from .project.store import ProjectFileStore
from .services.export import write_site
from .stream.demux import StreamDemultiplexer
from .stream.directives import TagParser


def _split(args: argparse.Namespace) -> int:
    source = Path(args.path)
    if not source.exists() or not source.is_file():
        raise SystemExit(f"File not found: {source}")

    settings = get_settings()
    store = ProjectFileStore(default_entry_file=settings.default_entry_file)
    demux = StreamDemultiplexer(store, parser=TagParser(max_pending=settings.max_pending_directive_chars))
    demux.feed(source.read_text(encoding="utf-8"))
    demux.finish()

    extension = settings.page_extensions[0] if settings.page_extensions else ".html"
    result = write_site(store.snapshot(), Path(args.out), extension=extension)
    for path in result.files:
        print(f"- {path}")
    for name in result.skipped:
        print(f"! skipped {name}")
    for action in demux.actions:
        print(f"* {action}")
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("livesite.main:create_app", factory=True, host=args.host, port=args.port, reload=args.reload)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(prog="livesite", description="Streaming site generation with live preview.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")
    serve.set_defaults(handler=_serve)

    split = subparsers.add_parser("split", help="Split a recorded tagged stream into files")
    split.add_argument("path", help="Text file containing the raw generation output")
    split.add_argument("--out", default="site", help="Directory to write the files to")
    split.set_defaults(handler=_split)

    args = parser.parse_args()
    return args.handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
