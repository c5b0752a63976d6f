import json

from retail_nlq.analysis.insights import InsightGenerator, parse_insights


def test_parse_strips_enumeration_and_keeps_three():
    text = "1. 台北營收佔 30%\n2) 高雄成長 12%\n\n3、台中客單價最低\n4. 多餘的一條"
    assert parse_insights(text) == ["台北營收佔 30%", "高雄成長 12%", "台中客單價最低"]


def test_parse_handles_bullets_and_keeps_numbers():
    text = "- 平均客單價 2,150 元\n• 美術店會員數最少\n2026 年 9 月營收最高"
    assert parse_insights(text) == ["平均客單價 2,150 元", "美術店會員數最少", "2026 年 9 月營收最高"]


def test_parse_empty_text():
    assert parse_insights("") == []
    assert parse_insights("\n  \n") == []


def test_generate_sends_question_and_sampled_rows(make_llm):
    llm = make_llm("1. 洞察一\n2. 洞察二")
    rows = [{"門市": f"店{i}", "營收": i} for i in range(5)]
    insights = InsightGenerator(llm=llm, sample_rows=2).generate("各門市營收", rows)

    assert insights == ["洞察一", "洞察二"]
    user = llm.calls[0][-1]["content"]
    assert user.startswith("問題：各門市營收\n資料：")
    sent = json.loads(user.split("資料：", 1)[1])
    assert sent == rows[:2]
