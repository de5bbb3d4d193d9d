"""Drives a rendering run across one or more artifact files."""

import logging
import sys
from typing import Callable, ContextManager, Iterable, Optional, TextIO

from ..errors import RecordSourceError, RenderError
from .renderer import ArtifactLayout, DisplayConfig, make_renderer

_LOG = logging.getLogger(__name__)

# Opens a path and returns a context manager with a records() generator
SourceOpener = Callable[[str], ContextManager]


class SessionDriver:
    """Filters, renders and counts records from a list of input files."""

    def __init__(
        self,
        config: DisplayConfig,
        open_source: SourceOpener,
        layout: ArtifactLayout,
        out: Optional[TextIO] = None,
    ):
        """Initialize a session.

        Args:
            config: Display settings for the whole run
            open_source: Factory for record sources, e.g. UsnJournal
            layout: Artifact layout matching the records the source yields
            out: Text stream for rendered output (defaults to stdout)
        """
        self.config = config
        self.open_source = open_source
        self.layout = layout
        self.out = out if out is not None else sys.stdout
        self.tally = 0

    def _write(self, text: str) -> None:
        self.out.write(text)
        self.out.flush()

    def run(self, paths: Iterable[str]) -> int:
        """Render every accepted record of every file, in order.

        A file that cannot be opened or read stops contributing records but
        does not end the run. Returns the number of records rendered.
        """
        paths = [str(p) for p in paths]
        renderer = make_renderer(self.config, self.layout, len(paths))

        header = renderer.header()
        if header:
            self._write("\n".join(header) + "\n")

        for path in paths:
            self._process_file(path, renderer)

        self._write(f"Record Count: {self.tally}\n")
        return self.tally

    def _process_file(self, path: str, renderer) -> None:
        _LOG.debug("Processing %s", path)
        date_range = self.config.date_range
        zone = self.config.timezone

        try:
            with self.open_source(path) as source:
                for record in source.records():
                    if not date_range.accepts(record, zone):
                        continue

                    self.tally += 1
                    try:
                        text = renderer.render(record, path)
                    except RenderError as e:
                        _LOG.warning("Unable to render record at offset %s in %s: %s",
                                     getattr(record, "offset", "?"), path, e)
                        continue
                    except Exception as e:
                        _LOG.warning("Unable to render record at offset %s in %s: %s: %s",
                                     getattr(record, "offset", "?"), path, type(e).__name__, e,
                                     exc_info=_LOG.isEnabledFor(logging.DEBUG))
                        continue
                    self._write(text)
        except RecordSourceError as e:
            _LOG.warning("Stopped reading %s: %s", path, e)
        except OSError as e:
            _LOG.warning("Unable to read %s: %s", path, e)
