import pytest

import services.scoring as scoring
from agents.types import ResponseAnalysis
from graph.state import new_conversation_state
from services.errors import MalformedAnalysisError


def test_full_marks_score_100(make_analysis):
    analysis = make_analysis(
        engagement="high",
        confidence="confident",
        length="detailed",
        new_topics=["Kubernetes", "Helm", "Docker"],
    )
    assert scoring.WeightedScoringStrategy().score(analysis) == pytest.approx(100.0, abs=0.05)


def test_weighted_components(make_analysis):
    analysis = make_analysis(engagement="medium", confidence="uncertain", length="brief", subtopics=["Helm"])
    # 0.30*0.6 + 0.25*0.5 + 0.20*0.3 + 0.25*(1/3) = 0.4483
    assert scoring.WeightedScoringStrategy().score(analysis) == 44.8


def test_novelty_counts_union_once(make_analysis):
    analysis = make_analysis(new_topics=["Kafka"], subtopics=["kafka", "Redis"])
    assert scoring.novelty(analysis) == pytest.approx(2 / 3)


def test_degraded_turn_drops_confidence_and_novelty(make_analysis):
    analysis = make_analysis(engagement="medium", confidence="uncertain", length="moderate", degraded=True)
    # (0.30*0.6 + 0.20*0.6) / 0.50
    assert scoring.WeightedScoringStrategy().score(analysis) == 60.0


def test_custom_weights_must_sum_to_one():
    with pytest.raises(ValueError):
        scoring.WeightedScoringStrategy(engagement=0.5, confidence=0.5, length=0.5, novelty_weight=0.5)


def test_length_only_strategy(make_analysis):
    strategy = scoring.LengthOnlyScoringStrategy()
    assert strategy.score(make_analysis(length="detailed")) == 100.0
    assert strategy.score(make_analysis(length="brief")) == 30.0


def test_grade_records_mention_buzzwords_and_grade(make_analysis):
    state = new_conversation_state("g1")
    analysis = make_analysis(engagement="high", buzzwords=["Python", "python", "docker"])
    grade = scoring.Grader().grade(0, analysis, state.current_node, state, utterance="  Python and Docker  ")

    assert state.grades == [grade]
    assert grade.content_snapshot == "Python and Docker"
    assert state.root.mentions[0].turn_index == 0
    assert state.root.mentions[0].engagement_level == "high"
    assert state.buzzwords["python"].count == 1
    assert state.buzzwords["python"].source_turn_indices == {0}


def test_buzzword_counts_once_per_turn_and_grow(make_analysis):
    state = new_conversation_state("g1")
    analysis = make_analysis(buzzwords=["kafka"])
    scoring.fold_buzzwords(state, 0, analysis)
    scoring.fold_buzzwords(state, 0, analysis)
    assert state.buzzwords["kafka"].count == 1
    scoring.fold_buzzwords(state, 3, analysis)
    assert state.buzzwords["kafka"].count == 2
    assert state.buzzwords["kafka"].source_turn_indices == {0, 3}


def test_grade_accepts_plain_dict():
    state = new_conversation_state("g1")
    grade = scoring.grade(
        0,
        {"engagement_level": "low", "confidence_level": "struggling", "response_length": "brief"},
        state.current_node,
        state,
    )
    assert 0.0 <= grade.score <= 100.0


def test_malformed_analysis_is_rejected():
    state = new_conversation_state("g1")
    with pytest.raises(MalformedAnalysisError):
        scoring.grade(0, {"engagement_level": "high"}, state.current_node, state)
    partial = ResponseAnalysis.model_construct(engagement_level="high")
    with pytest.raises(MalformedAnalysisError):
        scoring.grade(0, partial, state.current_node, state)
    with pytest.raises(MalformedAnalysisError):
        scoring.grade(0, "high", state.current_node, state)
    assert state.grades == [] and state.root.mentions == []


def test_average_score(make_analysis):
    state = new_conversation_state("g1")
    grader = scoring.Grader(scoring.LengthOnlyScoringStrategy())
    grader.grade(0, make_analysis(length="detailed"), state.current_node, state)
    grader.grade(1, make_analysis(length="brief"), state.current_node, state)
    assert scoring.average_score(state) == 65.0
