import json

import pytest
from langchain_core.messages import AIMessage

from api.features.chatbot.exceptions import EmptyMessageError
from nlq.context.retriever import CONTEXT_UNAVAILABLE_TEXT
from nlq.generation.generator import DATABASE_FALLBACK_MODEL
from nlq.pipeline.query_pipeline import APOLOGY_TEXT, GREETING_MODEL
from nlq.postprocess import STATISTICS_FOLLOW_UP
from nlq.prompts.greeting import GREETING_TEMPLATES
from nlq.types import CallerIdentity, Intent, SourceRef
from tests.fakes import FailingChatModel


class RecordingChatModel:
    """Answers every prompt with a fixed reply and keeps the prompts."""

    def __init__(self, reply="Đây là câu trả lời."):
        self.reply = reply
        self.prompts = []

    async def ainvoke(self, prompt, *args, **kwargs):
        self.prompts.append(prompt)
        return AIMessage(content=self.reply)


class ExplodingGenerator:
    llm = None

    async def generate(self, **kwargs):
        raise RuntimeError("boom")


class TestAnswers:
    @pytest.mark.asyncio
    async def test_count_question_is_answered_from_records(self, pipeline, records):
        result = await pipeline.submit_query("How many sisters are there?")

        assert result.success
        assert result.metadata.intent == Intent.STATISTICS
        assert f"Tổng số nữ tu: {len(records.sisters)}" in result.response_text
        assert result.response_text.endswith(STATISTICS_FOLLOW_UP)
        assert result.metadata.fallback
        assert result.metadata.model == DATABASE_FALLBACK_MODEL

    @pytest.mark.asyncio
    async def test_community_name_alone_cites_that_community(self, pipeline):
        result = await pipeline.submit_query("Thiện Bản")

        assert result.metadata.intent == Intent.COMMUNITY_INFO
        assert result.sources == [SourceRef(type="community", id=1, name="Thiện Bản")]

    @pytest.mark.asyncio
    async def test_model_answer_is_used_when_available(self, make_pipeline, turns):
        llm = RecordingChatModel("Chị Lan thuộc cộng đoàn Thiện Bản.")
        pipeline = make_pipeline(llm=llm)

        result = await pipeline.submit_query("Cho tôi thông tin về chị Lan")
        await pipeline.wait_for_pending()

        assert result.response_text == "Chị Lan thuộc cộng đoàn Thiện Bản."
        assert not result.metadata.fallback
        assert result.metadata.model == "test-model"
        assert "Thông tin chi tiết về Maria Lan" in llm.prompts[0]
        assert turns.rows[0]["tokens_used"] > 0

    @pytest.mark.asyncio
    async def test_blank_messages_are_rejected(self, pipeline, records):
        for message in (None, "", "   \n\t"):
            with pytest.raises(EmptyMessageError):
                await pipeline.submit_query(message)
        assert records.total_calls == 0


class TestAvailability:
    @pytest.mark.asyncio
    async def test_store_and_model_down_still_answers(self, make_pipeline, records):
        records.fail = True
        pipeline = make_pipeline(llm=FailingChatModel())

        result = await pipeline.submit_query("Có bao nhiêu nữ tu?", conversation_id="c-down")

        assert result.success
        assert result.response_text.strip()
        assert CONTEXT_UNAVAILABLE_TEXT in result.response_text
        assert set(result.metadata.degraded_stages) == {"entity_resolution", "context_retrieval"}
        assert result.metadata.fallback

    @pytest.mark.asyncio
    async def test_history_failure_is_degraded(self, pipeline, turns):
        turns.fail_reads = True
        result = await pipeline.submit_query("Thống kê", conversation_id="c-hist")
        assert result.success
        assert result.metadata.degraded_stages == ["history_load"]

    @pytest.mark.asyncio
    async def test_persistence_failure_does_not_change_the_answer(self, make_pipeline, turns):
        healthy = await make_pipeline().submit_query("Thống kê", conversation_id="c-a")

        turns.fail_create = True
        pipeline = make_pipeline()
        result = await pipeline.submit_query("Thống kê", conversation_id="c-b")
        await pipeline.wait_for_pending()

        assert result.success
        assert result.response_text == healthy.response_text
        assert all(row["conversation_id"] != "c-b" for row in turns.rows)

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_apology(self, pipeline):
        pipeline.generator = ExplodingGenerator()

        result = await pipeline.submit_query("Thống kê", conversation_id="c-err")

        assert not result.success
        assert result.response_text == APOLOGY_TEXT
        assert result.conversation_id == "c-err"
        assert result.error == "RuntimeError"


class TestGreeting:
    @pytest.mark.asyncio
    async def test_greeting_uses_template_and_name(self, pipeline, records, turns):
        result = await pipeline.submit_query(
            "Xin chào", identity=CallerIdentity(user_id="u1", display_name="Hoa")
        )
        await pipeline.wait_for_pending()

        assert result.metadata.intent == Intent.GREETING
        assert result.metadata.model == GREETING_MODEL
        assert result.response_text in {t.format(name="Hoa") for t in GREETING_TEMPLATES}
        assert result.sources == []
        assert turns.rows == []
        # Only the entity lookups ran; no context was built.
        assert set(records.calls) == {"list_sister_candidates", "list_community_candidates"}

    @pytest.mark.asyncio
    async def test_greeting_without_name(self, pipeline):
        result = await pipeline.submit_query("hello")
        assert result.response_text in {t.format(name="bạn") for t in GREETING_TEMPLATES}

    @pytest.mark.asyncio
    async def test_greeting_persisted_when_enabled(self, make_pipeline, turns):
        pipeline = make_pipeline(persist_greetings=True)
        await pipeline.submit_query("Xin chào", conversation_id="c-greet")
        await pipeline.wait_for_pending()

        assert len(turns.rows) == 1
        assert turns.rows[0]["intent"] == "greeting"

    @pytest.mark.asyncio
    async def test_unstored_greeting_has_no_turn_id(self, pipeline):
        result = await pipeline.submit_query("Xin chào")
        assert result.turn_id is None


class TestConversation:
    @pytest.mark.asyncio
    async def test_new_conversation_gets_an_id(self, pipeline):
        first = await pipeline.submit_query("Thống kê")
        second = await pipeline.submit_query("Thống kê")
        assert first.conversation_id
        assert first.conversation_id != second.conversation_id

    @pytest.mark.asyncio
    async def test_history_round_trip(self, make_pipeline, store):
        llm = RecordingChatModel()
        pipeline = make_pipeline(llm=llm)
        messages = [
            "Xin chào",
            "Cho tôi thông tin về chị Lan",
            "Hành trình ơn gọi của chị Lan",
            "Thống kê",
        ]

        for message in messages:
            await pipeline.submit_query(message, conversation_id="c-round")
            await pipeline.wait_for_pending()

        history = await store.get_history("c-round")
        answered = messages[1:]
        assert len(history) == 2 * len(answered)
        assert [m.content for m in history if m.role == "user"] == answered
        assert [m.role for m in history] == ["user", "assistant"] * len(answered)
        assert "Người dùng: Cho tôi thông tin về chị Lan" in llm.prompts[1]
        assert "Người dùng: Xin chào" not in llm.prompts[2]

    @pytest.mark.asyncio
    async def test_persisted_turn_records_entities_and_context(self, pipeline, turns):
        result = await pipeline.submit_query(
            "Thông tin chị Lan Anh",
            conversation_id="c-turn",
            identity=CallerIdentity(user_id="u7"),
        )
        await pipeline.wait_for_pending()

        row = turns.rows[0]
        assert row["user_id"] == "u7"
        assert row["intent"] == "sister_info"
        assert row["ai_response"] == result.response_text
        assert json.loads(row["entities_extracted"])["sister_id"] == 2
        assert json.loads(row["context_used"])["sources"][0]["id"] == 2

    @pytest.mark.asyncio
    async def test_turn_id_can_be_rated_once(self, pipeline, store, turns):
        result = await pipeline.submit_query("Thông tin chị Lan", conversation_id="c-rate")
        await pipeline.wait_for_pending()

        assert result.turn_id == turns.rows[0]["id"]
        history = await store.get_history("c-rate")
        assert [m.message_id for m in history] == [None, result.turn_id]

        assert await store.submit_feedback(result.turn_id, True, "Chính xác") is True
        assert await store.submit_feedback(result.turn_id, False) is False
        assert turns.rows[0]["is_helpful"] is True
