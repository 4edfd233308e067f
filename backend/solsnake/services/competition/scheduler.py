import threading
import time

from solsnake import socketio, get_engine

COMPETITION_ROOM = 'competition'


def run_tick(app):
    """Run one rollover check and push the countdown to connected clients."""
    with app.app_context():
        result = get_engine(app).tick()
        socketio.emit('countdown', result.period.to_dict(), to=COMPETITION_ROOM, namespace='/ws')
        if result.finalized is not None:
            app.logger.info(
                f"[timer-rollover] date={result.finalized.date} winners={len(result.finalized.winners)}"
            )
            socketio.emit('rollover', result.finalized.to_dict(), to=COMPETITION_ROOM, namespace='/ws')
        return result


def start_rollover_timer(app) -> bool:
    """Start the recurring rollover worker for ``app``.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single worker per app
    - Ticks every ROLLOVER_TICK_SEC until stop_rollover_timer is called
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return False

    state = app.extensions['solsnake']
    running = state.get('timer_stop')
    if running is not None and not running.is_set():
        app.logger.info("[timer-skip] rollover timer already running")
        return False

    stop = threading.Event()
    state['timer_stop'] = stop
    interval = max(0.1, float(app.config.get('ROLLOVER_TICK_SEC', 1)))
    heartbeat = int(app.config.get('TIMER_HEARTBEAT_SEC', 0) or 0)
    app.logger.info(f"[timer-set] rollover interval={interval}s heartbeat={heartbeat}s")

    def _worker():
        last_beat = time.time()
        while not stop.is_set():
            try:
                result = run_tick(app)
            except Exception:
                app.logger.exception("[timer-error] rollover tick failed")
                result = None
            if heartbeat > 0 and result is not None and time.time() - last_beat >= heartbeat:
                last_beat = time.time()
                app.logger.info(
                    f"[timer-heartbeat] day={result.period.day_key} remaining={result.period.ms_remaining // 1000}s"
                )
            socketio.sleep(interval)
        app.logger.info("[timer-stop] rollover timer stopped")

    socketio.start_background_task(_worker)
    return True


def stop_rollover_timer(app) -> None:
    stop = app.extensions.get('solsnake', {}).get('timer_stop')
    if stop is not None:
        stop.set()
