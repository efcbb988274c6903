"""
Tests for containment detection and absolute position resolution.
"""

from arch_canvas.containment import find_container_at_point, resolve_absolute

from tests.conftest import make_node


class TestResolveAbsolute:

    def test_nested_positions_accumulate(self):
        outer = make_node("outer", 100, 50, 600, 400, container=True)
        inner = make_node("inner", 20, 40, 300, 200, parent_id="outer", container=True)
        leaf = make_node("leaf", 10, 15, parent_id="inner")
        resolve_absolute([leaf, inner, outer])
        assert (inner.abs_x, inner.abs_y) == (120, 90)
        assert (leaf.abs_x, leaf.abs_y) == (130, 105)

    def test_unknown_parent_is_top_level(self):
        node = make_node("n", 5, 6, parent_id="missing")
        resolve_absolute([node])
        assert (node.abs_x, node.abs_y) == (5, 6)

    def test_parent_cycle_terminates(self):
        a = make_node("a", 10, 10, parent_id="b", container=True)
        b = make_node("b", 20, 20, parent_id="a", container=True)
        nodes = resolve_absolute([a, b])
        assert len(nodes) == 2


class TestFindContainerAtPoint:

    def test_nested_returns_smaller(self):
        outer = make_node("outer", 0, 0, 800, 600, container=True)
        inner = make_node("inner", 100, 100, 300, 200, container=True)
        assert find_container_at_point([outer, inner], (150, 150)).id == "inner"
        assert find_container_at_point([inner, outer], (150, 150)).id == "inner"

    def test_point_outside_everything(self):
        box = make_node("box", 0, 0, 100, 100, container=True)
        assert find_container_at_point([box], (150, 50)) is None

    def test_edges_are_inside(self):
        box = make_node("box", 0, 0, 100, 100, container=True)
        assert find_container_at_point([box], (100, 100)).id == "box"
        assert find_container_at_point([box], (0, 0)).id == "box"

    def test_non_containers_ignored(self):
        service = make_node("svc", 0, 0, 500, 500)
        assert find_container_at_point([service], (10, 10)) is None

    def test_excluded_node_never_matches(self):
        box = make_node("box", 0, 0, 100, 100, container=True)
        assert find_container_at_point([box], (10, 10), exclude_id="box") is None

    def test_equal_area_tie_goes_to_first(self):
        first = make_node("first", 0, 0, 200, 100, container=True)
        second = make_node("second", 50, 0, 200, 100, container=True)
        assert find_container_at_point([first, second], (100, 50)).id == "first"
        assert find_container_at_point([second, first], (100, 50)).id == "second"
