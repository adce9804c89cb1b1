import logging

from fastapi import FastAPI

from ldaem.core.config import get_settings
from ldaem.core.logging_config import configure_logging
from ldaem.routers import topics
from ldaem.services import topic_service

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title="LDA Topic Features", version="0.1.0")
    app.state.settings = settings
    app.include_router(topics.router)

    if settings.model_file and settings.corpus_path and settings.vocabulary_path:
        try:
            topic_service.load_from_settings(settings)
        except FileNotFoundError as exc:
            logger.warning("model not loaded (%s); train one with POST /topics/train", exc)
    return app


app = create_app()
