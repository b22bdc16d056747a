import logging

import pytest
from helpers import add, chain, raw_edge

from studio.workflow.errors import GraphCycleError
from studio.workflow.stage_resolver import can_use_as_source, compute_stages
from studio.workflow.workflow_model import GraphDocument


def _diamond():
    doc = GraphDocument()
    for node_type, node_id in (("trigger", "t"), ("ai", "a"), ("ai", "b"), ("ai", "c")):
        doc = add(doc, node_type, node_id)
    for source, target in (("t", "a"), ("t", "b"), ("a", "c"), ("b", "c")):
        doc = raw_edge(doc, source, target)
    return doc


def test_diamond_stages():
    doc = _diamond()
    assert compute_stages(doc.nodes, doc.edges) == {"t": 0, "a": 1, "b": 1, "c": 2}


def test_longest_path_wins():
    doc = chain(("trigger", "t", None), ("ai", "a", None), ("ai", "b", None))
    doc = raw_edge(doc, "t", "b")
    assert compute_stages(doc.nodes, doc.edges)["b"] == 2


def test_disconnected_nodes_sit_at_stage_zero():
    doc = add(add(GraphDocument(), "trigger", "t"), "ai", "a")
    assert compute_stages(doc.nodes, doc.edges) == {"t": 0, "a": 0}


def test_notes_are_excluded():
    doc = chain(("trigger", "t", None), ("ai", "a", None))
    doc = add(doc, "note", "n")
    doc = raw_edge(doc, "a", "n")
    stages = compute_stages(doc.nodes, doc.edges)
    assert "n" not in stages
    assert stages == {"t": 0, "a": 1}


def test_self_loops_are_ignored():
    doc = chain(("trigger", "t", None), ("ai", "a", None))
    doc = raw_edge(doc, "a", "a")
    assert compute_stages(doc.nodes, doc.edges, strict=True) == {"t": 0, "a": 1}


def test_edges_to_unknown_nodes_are_ignored():
    doc = chain(("trigger", "t", None), ("ai", "a", None))
    doc = raw_edge(doc, "ghost", "a")
    assert compute_stages(doc.nodes, doc.edges) == {"t": 0, "a": 1}


def _cycle():
    doc = chain(("trigger", "t", None), ("ai", "a", None), ("ai", "b", None))
    return raw_edge(doc, "b", "a")


def test_cycle_gets_best_effort_stages(caplog):
    doc = _cycle()
    with caplog.at_level(logging.WARNING, logger="studio.workflow.stage_resolver"):
        stages = compute_stages(doc.nodes, doc.edges)
    assert stages == {"t": 0, "a": 1, "b": 2}
    assert "cycle" in caplog.text


def test_strict_mode_raises_on_cycle():
    doc = _cycle()
    with pytest.raises(GraphCycleError) as exc_info:
        compute_stages(doc.nodes, doc.edges, strict=True)
    assert exc_info.value.node_ids == ["a", "b"]


def test_can_use_as_source():
    stages = {"t": 0, "a": 1, "b": 1, "c": 2}
    assert can_use_as_source("t", "c", stages)
    assert not can_use_as_source("a", "b", stages)
    assert not can_use_as_source("c", "a", stages)
    assert not can_use_as_source("ghost", "a", stages)
    assert not can_use_as_source("a", "ghost", stages)


def test_empty_graph():
    assert compute_stages([], []) == {}
