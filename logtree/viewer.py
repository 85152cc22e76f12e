"""Viewer session — wires ingestor, buffer, scheduler and UI state together."""

import asyncio
import logging
from typing import Callable, Optional

from logtree.buffer import EntryBuffer
from logtree.config import Config
from logtree.formatter import TemplateFormatter
from logtree.ingestor import ConnectionState, StreamIngestor
from logtree.metrics import Metrics
from logtree.models import Entry, Forest
from logtree.scheduler import RecomputeScheduler
from logtree.state import ExpansionState, SelectionState
from logtree.view import Row, describe, legend, render_rows, visible_rows

logger = logging.getLogger(__name__)


class LogViewer:
    """One session: a live stream reconstructed into a forest plus UI state."""

    def __init__(self, config: Config):
        self.config = config
        stream = config["stream"]

        self.metrics = Metrics()
        self.buffer = EntryBuffer(max_entries=config["buffer"]["max_entries"])
        self.scheduler = RecomputeScheduler(
            self.buffer,
            strategy=config["hierarchy"]["strategy"],
            tick_interval=config["scheduler"]["tick_interval"],
            max_delay=config["scheduler"]["max_delay"],
            metrics=self.metrics,
        )
        self.selection = SelectionState(lambda: self.scheduler.forest)
        self.expansion = ExpansionState(lambda: self.scheduler.forest)
        self.formatter = TemplateFormatter(
            title=config["formatter"]["title"],
            subtitle=config["formatter"]["subtitle"],
        )
        self.ingestor = StreamIngestor(
            stream["url"],
            self.buffer,
            metrics=self.metrics,
            reconnect=stream["reconnect"],
            base_delay=stream["base_delay"],
            max_delay=stream["max_delay"],
            max_attempts=stream["max_attempts"],
            connect_timeout=stream["connect_timeout"],
            on_status=self._on_status,
        )
        self._status_listeners: list[Callable[[ConnectionState], None]] = []
        self._scheduler_task: Optional[asyncio.Task] = None

    @property
    def forest(self) -> Forest:
        return self.scheduler.forest

    @property
    def connection_state(self) -> ConnectionState:
        return self.ingestor.state

    def add_status_listener(self, callback: Callable[[ConnectionState], None]):
        self._status_listeners.append(callback)

    async def start(self):
        self._scheduler_task = asyncio.create_task(self.scheduler.run())
        await self.ingestor.open()
        logger.info(
            "Viewer started: url=%s strategy=%s max_entries=%s",
            self.ingestor.url, self.scheduler.strategy.value, self.buffer.max_entries,
        )

    async def stop(self):
        await self.ingestor.close()
        self.scheduler.stop()
        if self._scheduler_task is not None:
            await self._scheduler_task
            self._scheduler_task = None
        logger.info("Viewer stopped. Stats: %s", self.stats())

    def rows(self) -> list[Row]:
        return visible_rows(
            self.forest, self.expansion, self.formatter, self.selection.selected_id,
        )

    def render(self, color: bool = True) -> str:
        """Legend, visible rows, then the detail lines of the selection."""
        lines = [legend(color=color), ""]
        lines.extend(render_rows(self.rows(), color=color))
        lines.append("")
        lines.extend(describe(self.selection.selected()))
        return "\n".join(lines)

    def entry(self, entry_id: str) -> Optional[Entry]:
        node = self.forest.get(entry_id)
        return node.entry if node is not None else None

    def stats(self) -> dict:
        snap = self.metrics.snapshot()
        snap["buffered"] = len(self.buffer)
        snap["evicted"] = self.buffer.evicted_count
        snap["roots"] = len(self.forest)
        snap["strategy"] = self.scheduler.strategy.value
        snap["connection"] = self.connection_state.value
        return snap

    def _on_status(self, state: ConnectionState, error: Optional[Exception]):
        if state is ConnectionState.DISCONNECTED:
            logger.warning("Log stream disconnected: %s", error)
        for callback in list(self._status_listeners):
            callback(state)
