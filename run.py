import eventlet
eventlet.monkey_patch()

from dotenv import load_dotenv

load_dotenv()

from roleplay_backend.app import create_app, socketio  # noqa: E402
from roleplay_backend.config import Config  # noqa: E402

app = create_app()

if __name__ == "__main__":
    # eventlet keeps the streamed replies and the socket connections on green threads
    socketio.run(app, host=Config.HOST, port=Config.PORT, debug=Config.DEBUG, use_reloader=False)
