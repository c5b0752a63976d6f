from datetime import date

import pytest

from retail_nlq.analysis.translator import SqlTranslator, render_turns
from retail_nlq.handlers.error_handler import GenerationError
from retail_nlq.types import GeneratedStatement

TODAY = date(2026, 10, 17)


def test_prompt_carries_dates_schema_and_question(make_llm):
    translator = SqlTranslator(llm=make_llm())
    messages = translator.build_messages("上個月各門市的營收排名？", today=TODAY)

    system = messages[0]["content"]
    assert messages[0]["role"] == "system"
    assert "今天是 2026-10-17" in system
    assert "上月 = 2026-09-01" in system
    assert "本月 = 2026-10-01" in system
    assert "下月 = 2026-11-01" in system
    assert "store_revenue_daily" in system
    assert "transaction_type = '收銀'" in system
    assert messages[-1] == {"role": "user", "content": "上個月各門市的營收排名？"}
    assert len(messages) == 2


def test_prior_turns_are_bounded_to_most_recent(make_llm):
    translator = SqlTranslator(llm=make_llm(), history_turns=2)
    turns = ["第一題", "第二題", "第三題"]
    messages = translator.build_messages("這個月呢？", prior_turns=turns, today=TODAY)

    context = messages[1]["content"]
    assert context.startswith("RECENT_CHAT")
    assert "第一題" not in context
    assert "第二題" in context
    assert "第三題" in context


def test_render_turns_labels_roles_and_skips_blanks():
    turns = [
        {"role": "user", "content": "本月營收？"},
        {"role": "assistant", "content": ""},
        {"role": "assistant", "content": "查詢到 5 筆結果。"},
        "  ",
    ]
    assert render_turns(turns, 6) == ["使用者：本月營收？", "助理：查詢到 5 筆結果。"]
    assert render_turns(turns, 0) == []
    assert render_turns(None, 6) == []


def test_translate_strips_code_fences(make_llm):
    llm = make_llm("```sql\nSELECT store FROM store_revenue_daily LIMIT 5\n```")
    statement = SqlTranslator(llm=llm).translate("各門市", today=TODAY)

    assert statement == GeneratedStatement("SELECT store FROM store_revenue_daily LIMIT 5")
    assert len(llm.calls) == 1


def test_translate_passes_token_budget():
    seen = {}

    class BudgetLLM:
        def complete(self, messages, max_output_tokens=900):
            seen["tokens"] = max_output_tokens
            return "SELECT 1"

    SqlTranslator(llm=BudgetLLM(), max_output_tokens=1234).translate("q", today=TODAY)
    assert seen["tokens"] == 1234


def test_empty_reply_raises(make_llm):
    with pytest.raises(GenerationError):
        SqlTranslator(llm=make_llm("```sql\n```")).translate("q", today=TODAY)


def test_generation_errors_propagate(make_llm):
    llm = make_llm(GenerationError("LLM_API_KEY not configured"))
    with pytest.raises(GenerationError, match="LLM_API_KEY"):
        SqlTranslator(llm=llm).translate("q", today=TODAY)
