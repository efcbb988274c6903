"""
Tests for the hierarchical layered layout engine.
"""

import networkx as nx
import pytest

from arch_canvas.layered import (
    LayeredLayoutEngine,
    LayeredOptions,
    LayoutItem,
    LayoutLink,
    greedy_fas_ordering,
    layout_level,
    remove_cycles,
    _resolve_links,
)


def items(*ids, width=100, height=50):
    return [LayoutItem(i, width, height) for i in ids]


def links(*pairs):
    return [LayoutLink(s, t) for s, t in pairs]


class TestCycleRemoval:

    def test_cycle_becomes_dag(self):
        graph = nx.DiGraph([("a", "b"), ("b", "c"), ("c", "a")])
        dag = remove_cycles(graph)
        assert nx.is_directed_acyclic_graph(dag)
        assert dag.number_of_edges() == 3

    def test_self_loop_dropped(self):
        graph = nx.DiGraph([("a", "a"), ("a", "b")])
        dag = remove_cycles(graph)
        assert list(dag.edges) == [("a", "b")]

    def test_ordering_is_deterministic(self):
        graph = nx.DiGraph([("x", "y"), ("y", "z"), ("z", "x"), ("w", "x")])
        assert greedy_fas_ordering(graph) == greedy_fas_ordering(graph.copy())

    def test_ordering_keeps_dag_order(self):
        graph = nx.DiGraph([("a", "b"), ("b", "c")])
        assert greedy_fas_ordering(graph) == ["a", "b", "c"]


class TestLayoutLevel:

    def test_chain_down(self):
        positions = layout_level(items("a", "b", "c"), links(("a", "b"), ("b", "c")), LayeredOptions())
        assert positions == {"a": (0, 0), "b": (0, 110), "c": (0, 220)}

    def test_chain_right(self):
        options = LayeredOptions(direction="RIGHT", layer_spacing=80)
        positions = layout_level(items("a", "b"), links(("a", "b")), options)
        assert positions["a"] == (0, 0)
        assert positions["b"] == (180, 0)

    def test_siblings_do_not_overlap(self):
        options = LayeredOptions(node_spacing=40)
        positions = layout_level(
            items("root", "l", "m", "r"),
            links(("root", "l"), ("root", "m"), ("root", "r")),
            options,
        )
        xs = sorted(positions[n][0] for n in ("l", "m", "r"))
        assert xs[1] - xs[0] >= 100 + 40
        assert xs[2] - xs[1] >= 100 + 40
        assert len({positions[n][1] for n in ("l", "m", "r")}) == 1

    def test_grid_fallback_without_edges(self):
        positions = layout_level(items("a", "b", "c", "d", "e"), [], LayeredOptions())
        assert {positions[n][1] for n in "abcd"} == {0}
        assert positions["e"] == (0, 110)
        assert [positions[n][0] for n in "abcd"] == [0, 140, 280, 420]

    def test_unknown_link_endpoints_ignored(self):
        positions = layout_level(items("a"), links(("a", "ghost")), LayeredOptions())
        assert positions == {"a": (0, 0)}

    def test_empty(self):
        assert layout_level([], [], LayeredOptions()) == {}

    def test_cycle_still_layered(self):
        positions = layout_level(
            items("a", "b", "c"),
            links(("a", "b"), ("b", "c"), ("c", "a")),
            LayeredOptions(),
        )
        assert len({y for _, y in positions.values()}) == 3


class TestHierarchicalLayout:

    @pytest.fixture
    def engine(self):
        return LayeredLayoutEngine()

    def test_children_inside_padding(self, engine):
        placements = engine.layout(
            [
                LayoutItem("box", 100, 100),
                LayoutItem("k1", 100, 50, parent_id="box"),
                LayoutItem("k2", 100, 50, parent_id="box"),
            ],
            [],
            LayeredOptions(),
        )
        assert (placements["k1"].x, placements["k1"].y) == (32, 48)
        assert (placements["k2"].x, placements["k2"].y) == (172, 48)
        box = placements["box"]
        assert box.width == 240 + 32 + 32
        assert box.height == 50 + 48 + 28

    def test_declared_container_size_is_minimum(self, engine):
        placements = engine.layout(
            [LayoutItem("box", 500, 400), LayoutItem("k", 100, 50, parent_id="box")],
            [],
            LayeredOptions(),
        )
        assert (placements["box"].width, placements["box"].height) == (500, 400)

    def test_cross_container_links_order_containers(self, engine):
        placements = engine.layout(
            [
                LayoutItem("left", 100, 100),
                LayoutItem("right", 100, 100),
                LayoutItem("a", 100, 50, parent_id="left"),
                LayoutItem("b", 100, 50, parent_id="right"),
            ],
            links(("b", "a")),
            LayeredOptions(direction="RIGHT"),
        )
        assert placements["right"].x < placements["left"].x

    def test_parent_cycle_laid_out(self, engine):
        placements = engine.layout(
            [LayoutItem("a", 100, 50, parent_id="b"), LayoutItem("b", 100, 50, parent_id="a")],
            [],
            LayeredOptions(),
        )
        assert set(placements) == {"a", "b"}

    def test_resolve_links_lifts_to_level(self):
        parents = {"left": None, "right": None, "a": "left", "b": "right", "c": "left"}
        resolved = _resolve_links(links(("a", "b"), ("c", "b"), ("a", "c")), parents, None)
        assert [(l.source, l.target) for l in resolved] == [("left", "right")]
