#!/usr/bin/env python3
"""
API server for the Paper Trader.
Exposes the account state, user actions and a WebSocket state feed.
"""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from config import DEFAULT_SETTINGS, ServerSettings, TOKENS
from data_feeds import CoinGeckoFeed
from mode_controller import BotController
from paper_trading import PaperTradingEngine, PaperTradingConfig, TraderVariant
from scheduler import TickScheduler

logger = logging.getLogger("server")


# ============================================================================
# LOGGING SETUP
# ============================================================================

def setup_logging(log_dir: str = "logs") -> None:
    """Setup logging: full debug file, trade audit file, console"""
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    today = datetime.now().strftime('%Y%m%d')

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # File handler - all logs
    file_handler = logging.FileHandler(f"{log_dir}/paper_trader_{today}.log")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
    ))

    # Trade-specific log
    trade_handler = logging.FileHandler(f"{log_dir}/trades_{today}.log")
    trade_handler.setLevel(logging.INFO)
    trade_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(message)s'
    ))

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(message)s'
    ))

    root.addHandler(file_handler)
    root.addHandler(console_handler)
    logging.getLogger("paper_trading").addHandler(trade_handler)


# ============================================================================
# FASTAPI APP
# ============================================================================

app = FastAPI(
    title="Paper Trader API",
    description="Paper trading on live Solana ecosystem prices",
    version="1.0.0",
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# GLOBAL STATE
# ============================================================================

settings: ServerSettings = DEFAULT_SETTINGS
paper_trading: Optional[PaperTradingEngine] = None
scheduler: Optional[TickScheduler] = None

# WebSocket clients
ws_clients: Set[WebSocket] = set()
_pending_broadcasts: Set[asyncio.Task] = set()


def build_engine(server_settings: ServerSettings) -> PaperTradingEngine:
    """Create the engine for the configured variant"""
    variant = TraderVariant.from_string(server_settings.variant)
    overrides = dict(
        starting_balance=server_settings.starting_balance,
        usd_to_eur_rate=server_settings.usd_to_eur_rate,
        poll_interval_sec=server_settings.poll_interval_sec,
    )
    if variant == TraderVariant.MANUAL:
        config = PaperTradingConfig.manual(**overrides)
    else:
        config = PaperTradingConfig.autonomous(**overrides)
    return PaperTradingEngine(config=config)


# ============================================================================
# STARTUP / SHUTDOWN
# ============================================================================

@app.on_event("startup")
async def startup():
    """Create the engine and start the tick scheduler"""
    global settings, paper_trading, scheduler

    settings = ServerSettings.from_env()
    paper_trading = build_engine(settings)
    attach_event_broadcasts(paper_trading)
    scheduler = TickScheduler(
        engine=paper_trading,
        feed=CoinGeckoFeed(),
        controller=BotController(),
        interval_sec=settings.poll_interval_sec,
    )
    scheduler.set_callbacks(on_tick=lambda state: broadcast({"type": "state", "data": state}))

    await scheduler.startup()
    logger.info(f"Started paper trader ({settings.variant})")


@app.on_event("shutdown")
async def shutdown():
    """Clean up on shutdown"""
    if scheduler:
        await scheduler.shutdown()
    logger.info("Shutdown complete")


# ============================================================================
# BROADCAST HELPERS
# ============================================================================

async def broadcast(message: dict):
    """Broadcast message to all connected WebSocket clients"""
    if not ws_clients:
        return

    data = json.dumps(message)
    disconnected = set()

    for ws in ws_clients:
        try:
            await ws.send_text(data)
        except Exception:
            disconnected.add(ws)

    # Clean up disconnected clients
    for ws in disconnected:
        ws_clients.discard(ws)


def attach_event_broadcasts(engine: PaperTradingEngine) -> None:
    """Push position opens and closed trades to WebSocket clients as they happen"""
    def on_position_open(position):
        _schedule_broadcast({"type": "position_opened", "data": position.to_dict()})

    def on_trade(trade):
        _schedule_broadcast({"type": "trade_closed", "data": trade.to_dict()})

    engine.on_position_open = on_position_open
    engine.on_trade = on_trade


def _schedule_broadcast(message: dict) -> None:
    # Engine callbacks are synchronous and always run on the event loop
    task = asyncio.get_running_loop().create_task(broadcast(message))
    _pending_broadcasts.add(task)
    task.add_done_callback(_pending_broadcasts.discard)


def _require_engine() -> PaperTradingEngine:
    if not paper_trading:
        raise HTTPException(status_code=503, detail="Paper trading not initialized")
    return paper_trading


def _require_scheduler() -> TickScheduler:
    if not scheduler:
        raise HTTPException(status_code=503, detail="Scheduler not initialized")
    return scheduler


def _state() -> dict:
    if scheduler:
        return scheduler.get_snapshot()
    return _require_engine().get_snapshot()


# ============================================================================
# STATUS ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    return {"status": "ok", "timestamp": datetime.now().isoformat()}


@app.get("/health")
async def health():
    """Healthy once the engine has applied at least one snapshot"""
    if not paper_trading:
        return {"status": "unhealthy", "reason": "not initialized"}
    if paper_trading.last_update is None:
        return {"status": "degraded", "reason": "no prices yet"}
    return {"status": "healthy", "last_update": paper_trading.last_update.isoformat()}


@app.get("/api/symbols")
async def get_symbols():
    return {"tokens": TOKENS}


# ============================================================================
# PAPER TRADING ENDPOINTS
# ============================================================================

@app.get("/api/paper-trading/state")
async def get_state():
    """Full render snapshot"""
    return _state()


@app.get("/api/paper-trading/account")
async def get_paper_account():
    """Get paper trading account summary"""
    return _require_engine().get_account_summary()


@app.get("/api/paper-trading/config")
async def get_paper_config():
    """Get paper trading configuration"""
    return _require_engine().get_config()


@app.post("/api/paper-trading/config")
async def update_paper_config(config: dict):
    """Update paper trading configuration"""
    engine = _require_engine()
    try:
        engine.update_config(**config)
        return {"status": "ok", "config": engine.get_config()}
    except (TypeError, ValueError) as e:
        return JSONResponse({"error": str(e)}, status_code=400)


@app.get("/api/paper-trading/positions")
async def get_paper_positions():
    """Get open paper trading positions"""
    return {"positions": _require_engine().get_positions()}


@app.post("/api/paper-trading/positions/{symbol}")
async def open_paper_position(symbol: str):
    """Manually open a position at the latest price"""
    result = _require_engine().manual_open(symbol)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return result.to_dict()


@app.post("/api/paper-trading/positions/{position_id}/close")
async def close_paper_position(position_id: int):
    """Manually close an open position"""
    trade = _require_engine().manual_close(position_id)
    if trade is None:
        raise HTTPException(status_code=404, detail=f"No open position {position_id}")
    return {"status": "ok", "trade": trade.to_dict()}


@app.get("/api/paper-trading/trades")
async def get_paper_trades(limit: int = 50):
    """Get paper trading trade history"""
    return {"trades": _require_engine().get_trade_history(limit)}


@app.get("/api/paper-trading/tokens")
async def get_paper_tokens():
    """Latest quotes with RSI and signal"""
    return {"tokens": _require_engine().get_tokens()}


@app.get("/api/paper-trading/logs")
async def get_paper_logs(limit: int = 100):
    """Activity log, newest first"""
    return {"logs": _require_engine().get_logs(limit)}


@app.post("/api/paper-trading/reset")
async def reset_paper_account():
    """Reset paper trading account to initial state"""
    if scheduler:
        await scheduler.reset()
    else:
        _require_engine().reset()
    return {"status": "ok", "account": _require_engine().get_account_summary()}


# ============================================================================
# BOT CONTROL ENDPOINTS
# ============================================================================

@app.get("/api/bot/status")
async def get_bot_status():
    return _require_scheduler().get_status()


@app.post("/api/bot/start")
async def start_bot():
    sched = _require_scheduler()
    started = await sched.start_bot()
    return {"started": started, **sched.get_status()}


@app.post("/api/bot/stop")
async def stop_bot():
    sched = _require_scheduler()
    stopped = await sched.stop_bot()
    return {"stopped": stopped, **sched.get_status()}


# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    """
    WebSocket endpoint for real-time state.

    Clients receive:
    - init: Full state on connect
    - state: Full state after every tick
    - position_opened / trade_closed: Position and trade events
    """
    await ws.accept()
    ws_clients.add(ws)
    logger.info(f"[WS] Client connected. Total: {len(ws_clients)}")

    try:
        await ws.send_json({
            "type": "init",
            "tokens": TOKENS,
            "data": _state() if paper_trading else None,
        })

        # Keep connection alive
        while True:
            try:
                data = await asyncio.wait_for(ws.receive_text(), timeout=30)
                msg = json.loads(data)

                if msg.get("type") == "ping":
                    await ws.send_json({"type": "pong"})

                elif msg.get("type") == "get_state":
                    await ws.send_json({"type": "state", "data": _state()})

            except asyncio.TimeoutError:
                # Send keepalive ping
                await ws.send_json({"type": "ping"})

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(f"[WS] Error: {e}")
    finally:
        ws_clients.discard(ws)
        logger.info(f"[WS] Client disconnected. Total: {len(ws_clients)}")


# ============================================================================
# MAIN
# ============================================================================

def main():
    """Run the server"""
    server_settings = ServerSettings.from_env()
    setup_logging(server_settings.log_dir)
    uvicorn.run(
        "server:app",
        host=server_settings.host,
        port=server_settings.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
