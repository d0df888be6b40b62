import logging

from flask import Flask, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO
from pydantic import ValidationError

from roleplay_backend.config import Config
from roleplay_backend.services.errors import TutorError
from roleplay_backend.services.feedback_gen import FeedbackGenerator
from roleplay_backend.services.llm_handler import LLMHandler
from roleplay_backend.services.orchestrator import ConversationOrchestrator
from roleplay_backend.services.pinyin_annotator import get_pinyin_annotator
from roleplay_backend.state.seed import seed_scenarios
from roleplay_backend.state.store import ConversationStore

logger = logging.getLogger(__name__)

socketio = SocketIO(
    cors_allowed_origins="*",
    ping_timeout=60,
    ping_interval=25,
)


def build_orchestrator(store=None, llm=None) -> ConversationOrchestrator:
    store = store or ConversationStore()
    llm = llm or LLMHandler()
    annotator = get_pinyin_annotator()
    feedback = FeedbackGenerator(llm, annotator)
    return ConversationOrchestrator(store, llm, feedback, annotator)


def create_app(orchestrator=None, seed=None, async_mode="eventlet"):
    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = Flask(__name__)
    CORS(app, origins=Config.ALLOWED_ORIGINS)

    orchestrator = orchestrator or build_orchestrator()
    should_seed = Config.SEED_SCENARIOS if seed is None else seed
    if should_seed:
        count = seed_scenarios(orchestrator.store)
        logger.info("Seeded %d scenarios", count)
    app.extensions["orchestrator"] = orchestrator

    from .api.chat import chat_bp
    from .api.session import session_bp
    from .api.pinyin import pinyin_bp
    from .api.flashcards import flashcards_bp
    from .api.dashboard import dashboard_bp

    app.register_blueprint(chat_bp, url_prefix='/api/chat')
    app.register_blueprint(session_bp, url_prefix='/api/session')
    app.register_blueprint(pinyin_bp, url_prefix='/api/pinyin')
    app.register_blueprint(flashcards_bp, url_prefix='/api/flashcards')
    app.register_blueprint(dashboard_bp, url_prefix='/api/dashboard')

    _register_error_handlers(app)

    # Import socket events BEFORE init_app so every new server picks up the handlers
    from .api import chat_socket  # noqa: F401

    socketio.init_app(app, async_mode=async_mode)

    return app


def _register_error_handlers(app):
    @app.errorhandler(TutorError)
    def handle_tutor_error(e):
        if e.status_code >= 500:
            logger.error("Request failed: %s", e)
            message = e.public_message
        else:
            message = str(e)
        return jsonify({'status': 'error', 'error': message}), e.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return jsonify({
            'status': 'error',
            'error': 'Invalid request',
            'details': e.errors(include_url=False, include_context=False),
        }), 400
