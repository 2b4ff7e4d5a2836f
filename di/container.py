from __future__ import annotations

import structlog
from dependency_injector import containers, providers

from core.settings import SETTINGS
from infra.resources import DatabaseResource
from nlq.generation.llm import build_chat_model


logger = structlog.get_logger("nlq")


class InfrastructureContainer(containers.DeclarativeContainer):
    settings = providers.Object(SETTINGS)
    logger = providers.Object(logger)

    # Database
    database = providers.Resource(
        DatabaseResource,
        database_url=str(SETTINGS.DATABASE.DATABASE_URL),
    )

    # None when OPENAI_API_KEY is unset or USE_OPENAI is false
    llm = providers.Singleton(build_chat_model, settings=SETTINGS.OPENAI)


class ServiceContainer(containers.DeclarativeContainer):
    """Application services - depends on infrastructure."""

    infrastructure = providers.DependenciesContainer()

    # Repositories
    records_repository = providers.Singleton(
        "api.features.records.repository.RecordsRepository",
        db=infrastructure.database,
    )

    chat_turn_repository = providers.Singleton(
        "api.features.conversation.repository.ChatTurnRepository",
        db=infrastructure.database,
    )

    # Pipeline components
    context_cache = providers.Singleton(
        "nlq.context.cache.ContextCache",
        ttl_seconds=SETTINGS.CHATBOT.CONTEXT_CACHE_TTL_SECONDS,
    )

    conversation_store = providers.Singleton(
        "api.features.conversation.service.ConversationStore",
        turns=chat_turn_repository,
        history_turns=SETTINGS.CHATBOT.HISTORY_TURNS,
        logger=infrastructure.logger,
    )

    entity_resolver = providers.Factory(
        "nlq.entities.resolver.EntityResolver",
        records=records_repository,
        logger=infrastructure.logger,
    )

    context_retriever = providers.Factory(
        "nlq.context.retriever.ContextRetriever",
        records=records_repository,
        cache=context_cache,
        logger=infrastructure.logger,
    )

    response_generator = providers.Factory(
        "nlq.generation.generator.ResponseGenerator",
        llm=infrastructure.llm,
        model_name=SETTINGS.OPENAI.OPENAI_MODEL,
        timeout_seconds=SETTINGS.OPENAI.OPENAI_TIMEOUT_SECONDS,
        unit_price_in_usd=SETTINGS.OPENAI.OPENAI_UNIT_PRICE_IN_USD,
        unit_price_out_usd=SETTINGS.OPENAI.OPENAI_UNIT_PRICE_OUT_USD,
        logger=infrastructure.logger,
    )

    # Singleton so background turn writes can be drained on shutdown
    query_pipeline = providers.Singleton(
        "nlq.pipeline.query_pipeline.QueryPipeline",
        resolver=entity_resolver,
        retriever=context_retriever,
        store=conversation_store,
        generator=response_generator,
        persist_greetings=SETTINGS.CHATBOT.PERSIST_GREETINGS,
        logger=infrastructure.logger,
    )


class ControllerContainer(containers.DeclarativeContainer):
    """Controller-specific dependencies."""

    services = providers.DependenciesContainer()
    infrastructure = providers.DependenciesContainer()

    chatbot_controller = providers.Factory(
        "api.features.chatbot.controller.ChatbotController",
        query_pipeline=services.query_pipeline,
        conversation_store=services.conversation_store,
        database=infrastructure.database,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Main application container composing all sub-containers."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "api.main",
            "api.features.chatbot.router",
        ]
    )

    infrastructure = providers.Container(InfrastructureContainer)
    services = providers.Container(ServiceContainer, infrastructure=infrastructure)
    controllers = providers.Container(
        ControllerContainer, services=services, infrastructure=infrastructure
    )
