from graph.checkpointer import dumps
from graph.state import ROOT_ID, BuzzwordStat, ResponseGrade, new_conversation_state
from graph.tree import add_child
from services.summary import summarize, summary_delta, top_buzzwords


def _state():
    state = new_conversation_state("sum-1")
    k8s = add_child(state, ROOT_ID, "Kubernetes")
    helm = add_child(state, k8s.id, "Helm")
    add_child(state, ROOT_ID, "Docker")
    k8s.status = "rich"
    helm.status = "exhausted"
    state.exhausted_topics.append(helm.id)
    state.root.status = "exploring"
    state.max_depth_reached = 2
    state.turn_count = 5
    state.grades.extend(
        [
            ResponseGrade(turn_index=0, score=80.0, engagement_level="high", content_snapshot="a"),
            ResponseGrade(turn_index=1, score=50.0, engagement_level="medium", content_snapshot="b"),
        ]
    )
    state.buzzwords = {
        "aws": BuzzwordStat(count=1, source_turn_indices={2}),
        "python": BuzzwordStat(count=2, source_turn_indices={1, 3}),
        "ansible": BuzzwordStat(count=1, source_turn_indices={2}),
        "docker": BuzzwordStat(count=2, source_turn_indices={0, 4}),
    }
    return state


def test_summary_fields():
    summary = summarize(_state())
    assert summary.turn_count == 5
    assert summary.total_nodes == 4
    assert summary.node_counts == {"unexplored": 1, "exploring": 1, "exhausted": 1, "rich": 1}
    assert summary.average_score == 65.0
    assert summary.current_path == ["General Background"]
    assert summary.exhausted_topics == ["Helm"]
    assert summary.max_depth_reached == 2
    assert "[*] Kubernetes (depth: 1)" in summary.tree_text
    assert len(summary.tree["nodes"]) == 4


def test_top_buzzwords_order():
    terms = [entry.term for entry in top_buzzwords(_state())]
    assert terms == ["docker", "python", "ansible", "aws"]
    assert [entry.term for entry in top_buzzwords(_state(), limit=2)] == ["docker", "python"]


def test_summary_is_pure_and_deterministic():
    state = _state()
    before = dumps(state)
    first = summarize(state)
    second = summarize(state)
    assert dumps(state) == before
    assert first == second


def test_summary_of_empty_session():
    summary = summarize(new_conversation_state("empty"))
    assert summary.average_score == 0.0
    assert summary.top_buzzwords == []
    assert summary.node_counts["unexplored"] == 1


def test_summary_delta():
    delta = summary_delta(_state())
    assert delta.turn_count == 5
    assert delta.last_score == 50.0
    assert delta.average_score == 65.0
