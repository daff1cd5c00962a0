"""
Runtime - Core.

============================================================
RESPONSIBILITY
============================================================
Wires the prediction components into one process.

    snapshot source ──► SnapshotStore ──► PredictionService
                              │                  ▲
                              ▼                  │
                       ParityValidator    SimulationClock
                                                 │
                                           Dashboard API

- Handles signals (SIGINT, SIGTERM)
- Starts and stops components in dependency order
- Read-only: nothing here submits instructions on-chain

============================================================
"""

import asyncio
import json
import logging
import signal
import sys
from typing import Any, Callable, Dict, List, Optional

import uvicorn

from core.clock import ClockProtocol
from core.exceptions import ConfigurationError, EquilibrateException
from dashboard.api import create_app
from flow_engine import EngineConfig, FlowEngine
from onchain_adapters.base import BaseSnapshotSource, SnapshotSubscription
from onchain_adapters.models import SnapshotUpdate
from onchain_adapters.providers.solana_rpc import SolanaRpcSnapshotSource
from parity_validation import ParityValidator
from simulation import PredictionService, SimulationClock
from snapshot_store import GameEvent, GameEventType, SnapshotStore

from .models import RuntimeConfig


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    correlation_id: Optional[str] = None,
) -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)
        correlation_id: Correlation ID for tracing

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
                "correlation_id": correlation_id or "",
            })
        )
    else:
        formatter = logging.Formatter(
            f"%(asctime)s | %(levelname)-8s | %(name)s | {correlation_id or ''} | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("runtime")


# ============================================================
# RUNTIME
# ============================================================

class GameRuntime:
    """
    Owns every component of a running prediction process.

    The first configured game that is loaded is ticked. When it ends,
    the next loaded game takes over; when none is loaded, the next
    game to appear is picked up.
    """

    def __init__(
        self,
        config: RuntimeConfig,
        source: Optional[BaseSnapshotSource] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        errors = config.validate()
        if errors:
            raise ConfigurationError(
                f"Invalid runtime configuration: {'; '.join(errors)}",
                context={"errors": errors},
            )

        self._config = config
        self._logger = logging.getLogger("runtime")

        self._source = source or SolanaRpcSnapshotSource(
            rpc_url=config.rpc_url,
            commitment=config.commitment,
            poll_interval=config.poll_interval_seconds,
            mint_decimals=config.mint_decimals,
        )
        self._store = SnapshotStore()
        self._engine = FlowEngine(EngineConfig(debug_assertions=config.debug))
        self._service = PredictionService(self._store, engine=self._engine, clock=clock)
        self._clock = SimulationClock(self._service, tick_interval_ms=config.tick_interval_ms)

        self._parity: Optional[ParityValidator] = None
        self._unsubscribe: List[Callable[[], None]] = [self._store.subscribe(self._on_game_event)]
        if config.parity_enabled:
            self._parity = ParityValidator(engine=self._engine)
            self._unsubscribe.append(self._parity.attach(self._store))

        self._subscriptions: Dict[str, SnapshotSubscription] = {}
        self._server: Optional[uvicorn.Server] = None
        self._server_task: Optional[asyncio.Task] = None

        self._running = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._update_errors = 0

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def config(self) -> RuntimeConfig:
        return self._config

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def service(self) -> PredictionService:
        return self._service

    @property
    def clock(self) -> SimulationClock:
        return self._clock

    @property
    def source(self) -> BaseSnapshotSource:
        return self._source

    @property
    def parity(self) -> Optional[ParityValidator]:
        return self._parity

    @property
    def is_running(self) -> bool:
        return self._running

    def stats(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "games_loaded": len(self._store),
            "subscriptions": sorted(self._subscriptions),
            "update_errors": self._update_errors,
            "clock": self._clock.stats(),
            "source": self._source.get_health().to_dict(),
        }

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to every game, start ticking and serving."""
        if self._running:
            self._logger.warning("Runtime already running")
            return

        self._logger.info("=== RUNTIME STARTUP ===")
        self._loop = asyncio.get_running_loop()
        self._shutdown_event = asyncio.Event()

        for game_id in self._config.game_ids:
            self._subscriptions[game_id] = self._source.subscribe(game_id, self.apply_update)

        self._clock.select(self._first_loaded() or self._config.game_ids[0])

        if self._config.serve_dashboard:
            self._start_dashboard()

        self._running = True
        self._logger.info(
            f"Following {len(self._config.game_ids)} game(s) via {self._source.name}, "
            f"ticking every {self._config.tick_interval_ms} ms"
        )

    async def stop(self) -> None:
        """Stop every component in reverse order."""
        if not self._running:
            return

        self._logger.info("=== RUNTIME SHUTDOWN ===")
        self._running = False

        if self._server is not None:
            self._server.should_exit = True
        if self._server_task is not None:
            await self._server_task
            self._server_task = None

        await self._clock.close()

        for subscription in self._subscriptions.values():
            subscription.cancel()
        for subscription in self._subscriptions.values():
            await subscription.wait_closed()
        self._subscriptions.clear()

        await self._source.close()

        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()
        self._service.close()

        if self._shutdown_event is not None:
            self._shutdown_event.set()

        self._logger.info("=== RUNTIME SHUTDOWN COMPLETE ===")

    async def run_forever(self) -> None:
        """Start, then block until a signal or stop()."""
        await self.start()
        self._install_signal_handlers()
        try:
            await self._shutdown_event.wait()
        finally:
            self._restore_signal_handlers()
            await self.stop()

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    # --------------------------------------------------------
    # Updates
    # --------------------------------------------------------

    def apply_update(self, update: SnapshotUpdate) -> Optional[GameEvent]:
        """
        Route one source observation into the store.

        A rejected snapshot is logged and the previous one stays.
        """
        if update.ended:
            return self._store.remove(update.game_id)

        try:
            return self._store.publish(update.game_id, update.config, update.snapshot)
        except EquilibrateException as e:
            self._update_errors += 1
            self._logger.error(f"Rejected update from {update.source_name}: {e.to_log_format()}")
            return None

    def _on_game_event(self, event: GameEvent) -> None:
        if not self._running or event.game_id not in self._config.game_ids:
            return

        active = self._clock.active_game
        if event.event_type == GameEventType.END and event.game_id == active:
            next_game = self._first_loaded()
            self._logger.info(f"Active game {event.game_id} ended, now ticking {next_game}")
            self._clock.select(next_game)
        elif event.event_type == GameEventType.NEW and (active is None or not self._store.is_loaded(active)):
            next_game = self._first_loaded()
            self._logger.info(f"Game {event.game_id} appeared, now ticking {next_game}")
            self._clock.select(next_game)

    def _first_loaded(self) -> Optional[str]:
        for game_id in self._config.game_ids:
            if self._store.is_loaded(game_id):
                return game_id
        return None

    # --------------------------------------------------------
    # Dashboard
    # --------------------------------------------------------

    def _start_dashboard(self) -> None:
        app = create_app(
            self._service,
            clock=self._clock,
            source=self._source,
            parity=self._parity,
        )
        server_config = uvicorn.Config(
            app,
            host=self._config.dashboard_host,
            port=self._config.dashboard_port,
            log_level=self._config.log_level.lower(),
            log_config=None,
        )
        self._server = uvicorn.Server(server_config)
        self._server_task = asyncio.get_running_loop().create_task(self._server.serve())
        # uvicorn traps SIGINT/SIGTERM while serving; its exit ends the runtime
        self._server_task.add_done_callback(lambda _: self.request_shutdown())
        self._logger.info(
            f"Dashboard API on http://{self._config.dashboard_host}:{self._config.dashboard_port}"
        )

    # --------------------------------------------------------
    # Signal Handlers
    # --------------------------------------------------------

    def _install_signal_handlers(self) -> None:
        """Install signal handlers for graceful shutdown."""
        if sys.platform == "win32":
            signal.signal(signal.SIGINT, self._signal_handler)
        else:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, self._async_signal_handler, sig)

    def _restore_signal_handlers(self) -> None:
        """Restore original signal handlers."""
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)

    def _signal_handler(self, signum: int, frame: Any) -> None:
        """Synchronous signal handler (Windows)."""
        self._logger.info(f"Received signal {signum}")
        self._loop.call_soon_threadsafe(self.request_shutdown)

    def _async_signal_handler(self, sig: signal.Signals) -> None:
        """Loop signal handler (Unix)."""
        self._logger.info(f"Received signal {sig.name}")
        self.request_shutdown()
