from solsnake import create_app, socketio
from solsnake.services.competition.scheduler import start_rollover_timer

app = create_app()
 
if __name__ == '__main__':
    # Catch up on a day that rolled over while nothing was running, then keep ticking
    start_rollover_timer(app)
    # Use SocketIO server to enable websockets in dev
    socketio.run(app, debug=True, use_reloader=False)
