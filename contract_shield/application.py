"""
Application factory wiring the stores, the orchestrator and the API blueprint.
"""
import logging
from dataclasses import dataclass, replace
from functools import partial
from typing import Optional

from flask import Flask, jsonify

from contract_shield import __version__
from contract_shield.config import Config
from contract_shield.routes.api_routes import api_bp
from contract_shield.services.analysis_orchestrator import AnalysisOrchestrator
from contract_shield.services.history_store import HistoryStore
from contract_shield.services.llm_client import invoke_model
from contract_shield.services.quota_tracker import QuotaTracker
from contract_shield.storage import JSONFileStore

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    """Stores and orchestrator shared by all requests of one app."""
    config: Config
    history: HistoryStore
    quota: QuotaTracker
    orchestrator: AnalysisOrchestrator


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )


def build_state(config: Config, storage=None, invoke=None, clock=None) -> AppState:
    """
    Wire the stores and the orchestrator.

    Args:
        config: Application settings.
        storage: Key-value store; defaults to JSON files under config.data_dir.
        invoke: Model call override (tests).
        clock: Time source override (tests).
    """
    if storage is None:
        storage = JSONFileStore(config.data_dir)

    clock_kwargs = {'clock': clock} if clock is not None else {}
    history = HistoryStore(storage, max_analyses=config.max_stored_analyses)
    quota = QuotaTracker(
        storage,
        free_quota=config.free_reviews_per_month,
        default_credential=config.default_credential,
        **clock_kwargs
    )
    if invoke is None:
        invoke = partial(
            invoke_model,
            model=config.openai_model,
            timeout=config.llm_timeout,
            max_tokens=config.llm_max_tokens
        )
    orchestrator = AnalysisOrchestrator(
        history,
        quota,
        invoke=invoke,
        max_input_chars=config.llm_max_input_chars,
        **clock_kwargs
    )
    return AppState(config=config, history=history, quota=quota, orchestrator=orchestrator)


def create_app(config: Optional[Config] = None, **overrides) -> Flask:
    """
    Create the Flask app.

    Args:
        config: Settings; defaults to Config.from_env().
        **overrides: `storage`, `invoke` and `clock` are passed to build_state;
            anything else replaces a Config field.
    """
    config = config or Config.from_env()
    state_kwargs = {k: overrides.pop(k) for k in ('storage', 'invoke', 'clock') if k in overrides}
    if overrides:
        config = replace(config, **overrides)

    configure_logging(config.log_level)

    app = Flask(__name__)
    app.secret_key = config.secret_key
    app.extensions['contract_shield'] = build_state(config, **state_kwargs)
    app.register_blueprint(api_bp)

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok', 'version': __version__})

    logger.info(f"Contract Shield app created (data_dir={config.data_dir}, model={config.openai_model})")
    return app
