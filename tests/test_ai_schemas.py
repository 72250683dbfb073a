from arb_sim.ai.schemas import Lesson, TradeAnalysis

_LAYERS = '{"l1": "quotes", "l2": "gap", "l3": "tight stop", "l4": "brief", "l5": "captured"}'


def test_trade_analysis_parse_valid_json() -> None:
    raw = f'{{"summary": "Spread captured on SOL.", "layers": {_LAYERS}}}'
    analysis = TradeAnalysis.parse_response_text(raw)
    assert analysis is not None
    assert analysis.summary == "Spread captured on SOL."
    assert analysis.layers.l3 == "tight stop"


def test_trade_analysis_parse_fenced_json() -> None:
    raw = f'Here you go:\n```json\n{{"summary": "ok", "layers": {_LAYERS}}}\n```'
    analysis = TradeAnalysis.parse_response_text(raw)
    assert analysis is not None
    assert analysis.layers.model_dump()["l1"] == "quotes"


def test_trade_analysis_invalid_payload_maps_to_none() -> None:
    assert TradeAnalysis.parse_response_text('{"summary": "missing layers"}') is None
    assert TradeAnalysis.parse_response_text(f'{{"summary": "", "layers": {_LAYERS}}}') is None
    extra = f'{{"summary": "ok", "layers": {_LAYERS}, "confidence": 0.9}}'
    assert TradeAnalysis.parse_response_text(extra) is None


def test_non_json_maps_to_none() -> None:
    assert TradeAnalysis.parse_response_text("hello world") is None
    assert Lesson.parse_response_text("[1, 2, 3]") is None
    assert Lesson.parse_response_text("{not json}") is None


def test_lesson_retention_score_bounds() -> None:
    valid = Lesson.parse_strict(
        {"topic": "Fees", "content": "Both legs pay.", "reasoning": "Net below gross.", "retention_score": 80}
    )
    assert valid is not None
    assert valid.retention_score == 80.0
    too_high = Lesson.parse_strict(
        {"topic": "Fees", "content": "Both legs pay.", "reasoning": "Net below gross.", "retention_score": 120}
    )
    assert too_high is None
