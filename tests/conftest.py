import random

import pytest

from api.features.conversation.service import ConversationStore
from nlq.context.cache import ContextCache
from nlq.context.retriever import ContextRetriever
from nlq.entities.resolver import EntityResolver
from nlq.generation.generator import ResponseGenerator
from nlq.pipeline.query_pipeline import QueryPipeline
from tests.fakes import FakeClock, FakeTurnRepository, seed_records


@pytest.fixture
def records():
    return seed_records()


@pytest.fixture
def turns():
    return FakeTurnRepository()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ContextCache(ttl_seconds=1800, clock=clock)


@pytest.fixture
def store(turns):
    return ConversationStore(turns, history_turns=5)


@pytest.fixture
def resolver(records):
    return EntityResolver(records)


@pytest.fixture
def retriever(records, cache):
    return ContextRetriever(records, cache)


@pytest.fixture
def make_pipeline(resolver, retriever, store):
    """Build a pipeline around the shared fakes with a chosen chat model."""

    def _make(llm=None, persist_greetings=False, timeout_seconds=5.0):
        generator = ResponseGenerator(llm, model_name="test-model", timeout_seconds=timeout_seconds)
        return QueryPipeline(
            resolver=resolver,
            retriever=retriever,
            store=store,
            generator=generator,
            persist_greetings=persist_greetings,
            rng=random.Random(7),
        )

    return _make


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline()
