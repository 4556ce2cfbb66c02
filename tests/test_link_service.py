import math

import pytest

from builders import main_with_parents, node, people_of, person, tree_of
from models import NodeRole
from services.errors import GeometryError
from services.geometry import family_offset
from services.link_service import create_all_links, create_links, elbow, link_id


def _length(path):
    (x1, y1), (x2, y2) = path
    return math.hypot(x2 - x1, y2 - y1)


def test_ancestry_link_vertical_elbow():
    tree, people = main_with_parents()
    links = create_links(tree, tree.get("M"), people)

    assert len(links) == 1
    link = links[0]
    o = family_offset("F", "Mo") * 50
    assert link.d == [(0.0, 0.0), (0.0, -75.0 + o), (0.0, -75.0 + o), (0.0, -75.0 + o), (0.0, -75.0 + o), (0.0, -150.0)]
    assert link.id == "F, M, Mo"
    assert link.is_ancestry is True
    assert link.depth == 1
    assert link.source == ["M"]
    assert link.target == ["F", "Mo"]
    assert link.collapsed() == [(0.0, 0.0)] * 6


def test_ancestry_link_collapses_to_prior_position():
    tree, people = main_with_parents()
    m = tree.get("M")
    m.prev_x, m.prev_y = 40.0, -20.0
    link = create_links(tree, m, people)[0]

    assert link.d[0] == (0.0, 0.0)
    assert link.collapsed() == [(40.0, -20.0)] * 6


def test_ancestry_link_horizontal_elbow():
    m = node("M", NodeRole.MAIN, 0.0, 0.0, parents=["F", "Mo"])
    f = node("F", NodeRole.ANCESTOR, -150.0, -125.0, is_ancestry=True)
    mo = node("Mo", NodeRole.ANCESTOR, -150.0, 125.0, is_ancestry=True)
    tree = tree_of(m, f, mo)

    link = create_links(tree, m, {}, is_horizontal=True, link_curve=False)[0]
    o = family_offset("F", "Mo") * 50
    assert link.d[0] == (0.0, 0.0)
    assert link.d[1] == (-75.0 + o, 0.0)
    assert link.d[3] == (-75.0 + o, 0.0)
    assert link.d[-1] == (-150.0, 0.0)
    assert link.curve is False


def test_single_parent_ancestry_link_targets_that_parent():
    m = node("M", NodeRole.MAIN, 0.0, 0.0, parents=["F"])
    f = node("F", NodeRole.ANCESTOR, 100.0, -150.0, is_ancestry=True)
    link = create_links(tree_of(m, f), m, {})[0]
    assert link.d[-1] == (100.0, -150.0)
    assert link.target == ["F", "F"]
    assert link.id == "F, F, M"


def test_progeny_link_branches_from_other_parent():
    p = node("P", NodeRole.MAIN, 0.0, 0.0, spouses=["W"], children=["C"], sx=50.0)
    w = node("W", NodeRole.SPOUSE, 100.0, 0.0, partner="P", sx=50.0)
    c = node("C", NodeRole.DESCENDANT, 50.0, 150.0, depth=1, psx=50.0, psy=0.0)
    tree = tree_of(p, w, c)
    people = people_of(person("P", children=["C"]), person("W"), person("C", parents=["P", "W"]))

    links = create_links(tree, p, people)
    progeny = [link for link in links if not link.spouse]
    assert len(progeny) == 1
    link = progeny[0]
    o = family_offset("P", "W") * 50
    assert link.d == [(50.0, 150.0), (50.0, 75.0 + o), (50.0, 75.0 + o), (50.0, 75.0 + o), (50.0, 75.0 + o), (50.0, 0.0)]
    assert link.source == ["P", "W"]
    assert link.target == ["C"]
    assert link.id == "C, P, W"
    assert link.is_ancestry is False
    assert link.collapsed() == [(50.0, 0.0)] * 6


def test_progeny_link_single_parent_uses_node_itself():
    p = node("P", NodeRole.MAIN, 0.0, 0.0, children=["C"], sx=0.0)
    c = node("C", NodeRole.DESCENDANT, 0.0, 150.0, depth=1)
    tree = tree_of(p, c)
    people = people_of(person("P", children=["C"]), person("C", parents=["P"]))

    link = create_links(tree, p, people)[0]
    assert link.source == ["P", "P"]
    assert link.id == "C, P, P"
    assert link.d[-1] == (0.0, 0.0)


def test_progeny_link_requires_branch_point():
    p = node("P", NodeRole.MAIN, 0.0, 0.0, children=["C"])
    c = node("C", NodeRole.DESCENDANT, 0.0, 150.0, depth=1)
    with pytest.raises(GeometryError):
        create_links(tree_of(p, c), p, people_of(person("P"), person("C", parents=["P"])))


def test_spouse_link_is_straight_and_not_degenerate():
    p = node("P", NodeRole.MAIN, 0.0, 0.0, spouses=["W"])
    w = node("W", NodeRole.SPOUSE, 100.0, 0.0, partner="P")
    link = create_links(tree_of(p, w), p, {})[0]

    assert link.spouse is True
    assert link.curve is False
    assert link.d == [(0.0, 0.0), (100.0, 0.0)]
    assert link.depth == 0
    assert _length(link.collapsed()) > 0


def test_coparent_link_collapse_keeps_length_when_ends_coincide():
    f = node("F", NodeRole.ANCESTOR, -125.0, -150.0, depth=-1, is_ancestry=True, coparent="Mo")
    mo = node("Mo", NodeRole.ANCESTOR, 125.0, -150.0, depth=-1, is_ancestry=True)
    f.prev_x, f.prev_y = 0.0, 0.0
    mo.prev_x, mo.prev_y = 0.0, 0.0

    link = create_links(tree_of(f, mo), f, {})[0]
    assert link.is_ancestry is True
    assert link.d == [(-125.0, -150.0), (125.0, -150.0)]
    assert _length(link.collapsed()) > 0


def test_link_id_is_symmetric():
    a = node("A", NodeRole.MAIN, 0.0)
    b = node("B", NodeRole.ANCESTOR, 0.0)
    assert link_id(a, b) == link_id(b, a) == "A, B"


def test_unpositioned_parent_aborts_link():
    tree, people = main_with_parents()
    tree.get("F").x = None
    with pytest.raises(GeometryError):
        create_links(tree, tree.get("M"), people)


def test_create_all_links_drops_duplicate_coparent_links():
    tree, people = main_with_parents()
    tree.get("Mo").coparent = "F"
    links = create_all_links(tree, people)
    ids = [link.id for link in links]
    assert ids.count("F, Mo") == 1
    assert "F, M, Mo" in ids


def test_elbow_without_offset_runs_through_midpoint():
    assert elbow((0.0, 0.0), (100.0, 200.0)) == [
        (0.0, 0.0), (0.0, 100.0), (0.0, 100.0), (100.0, 100.0), (100.0, 100.0), (100.0, 200.0),
    ]


def test_link_payload_includes_collapsed_path():
    tree, people = main_with_parents()
    payload = create_links(tree, tree.get("M"), people)[0].to_payload()
    assert "collapsed" not in payload
    assert payload["_d"] == [(0.0, 0.0)] * 6
    assert payload["id"] == "F, M, Mo"
