import logging

import pytest

from geoscene import (
    DragSession,
    ParentRef,
    Scene,
    add_circle,
    add_intersection,
    add_line,
    add_midpoint,
    add_parallel_line,
    add_point,
    add_point_on_circle,
    add_point_on_line,
    add_polygon,
    add_segment,
)
from geoscene.drag import snap_weight


def slanted_scene(bx: float = 10.0, by: float = 0.3):
    scene = Scene()
    a = add_point(scene, 0.0, 0.0, label='A')
    b = add_point(scene, bx, by, label='B')
    line = add_line(scene, a.id, b.id)
    return scene, a, b, line


@pytest.mark.parametrize(
    'deviation, expected',
    [
        (0.0, 1.0),
        (0.5, 0.0),
        (0.25, 0.25),
        (4.9, 0.0),
        (5.0, 0.0),
        (30.0, 0.0),
    ],
)
def test_snap_weight_ramp(deviation, expected):
    assert snap_weight(deviation, 5.0, 0.9) == pytest.approx(expected)


def test_axis_snap_pulls_towards_horizontal_and_commits_on_release():
    scene, a, b, line = slanted_scene()
    session = DragSession(scene)
    assert session.begin('point', b.id, (10.0, 0.3))

    session.move((10.0, 0.5))
    assert session.indicator is None
    assert b.pos == pytest.approx((10.0, 0.5))

    session.move((10.0, 0.02))
    indicator = session.indicator
    assert indicator is not None
    assert indicator.axis == 'horizontal'
    assert indicator.value == pytest.approx(0.0)
    assert 0.0 < indicator.strength < 1.0
    assert indicator.point_ids == (b.id, a.id)
    assert 0.0 < b.y < 0.02

    changed = session.end()
    assert b.pos == pytest.approx((10.0, 0.0))
    assert session.indicator is None
    assert not session.dragging
    assert changed == [b.id]


def test_axis_snap_vertical():
    scene, a, b, line = slanted_scene(bx=0.5, by=10.0)
    session = DragSession(scene)
    session.begin('point', b.id, (0.5, 10.0))
    session.move((0.01, 10.0))
    assert session.indicator is not None
    assert session.indicator.axis == 'vertical'
    session.end()
    assert b.pos == pytest.approx((0.0, 10.0))


def test_snap_uses_raw_pointer_path():
    scene, a, b, line = slanted_scene()
    session = DragSession(scene)
    session.begin('point', b.id, (10.0, 0.3))
    session.move((10.0, 0.02))
    session.move((10.0, 2.0))
    # leaving the window releases the point at the raw position
    assert session.indicator is None
    assert b.pos == pytest.approx((10.0, 2.0))


def test_history_is_recorded_once_per_committed_drag():
    scene, a, b, line = slanted_scene(by=5.0)
    snapshots = []
    session = DragSession(scene, history=snapshots.append)

    session.begin('point', b.id, (10.0, 5.0))
    session.end()
    assert snapshots == []

    session.begin('point', b.id, (10.0, 5.0))
    for y in (6.0, 7.0, 8.0):
        session.move((10.0, y))
    session.end()
    assert len(snapshots) == 1
    saved = next(p for p in snapshots[0]['points'] if p['id'] == b.id)
    assert (saved['x'], saved['y']) == pytest.approx((10.0, 8.0))


def test_dragged_point_on_line_is_projected():
    scene, a, b, line = slanted_scene(by=0.0)
    point = add_point_on_line(scene, line.id, 3.0, 0.0)
    session = DragSession(scene)
    assert session.begin('point', point.id, (3.0, 0.0))
    session.move((5.0, 5.0))
    assert point.pos == pytest.approx((5.0, 0.0))
    assert point.param == pytest.approx(0.5)
    session.end()
    assert point.construction_kind == 'on_object'


def test_dragged_point_on_segment_is_clamped():
    scene = Scene()
    a = add_point(scene, 0.0, 0.0)
    b = add_point(scene, 10.0, 0.0)
    segment = add_segment(scene, a.id, b.id)
    point = add_point_on_line(scene, segment.id, 8.0, 0.0)
    session = DragSession(scene)
    session.begin('point', point.id, (8.0, 0.0))
    session.move((25.0, 1.0))
    assert point.pos == pytest.approx((10.0, 0.0))
    assert point.param == pytest.approx(1.0)


def test_dragged_point_on_circle_is_projected():
    scene, a, b, line = slanted_scene(by=0.0)
    circle = add_circle(scene, a.id, b.id)
    point = add_point_on_circle(scene, circle.id, 10.0, 0.0)
    session = DragSession(scene)
    session.begin('point', point.id, (10.0, 0.0))
    session.move((0.0, 15.0))
    assert point.pos == pytest.approx((0.0, 10.0), abs=1e-9)


def test_derived_points_are_not_draggable():
    scene, a, b, line = slanted_scene(by=0.0)
    c = add_point(scene, 5.0, -5.0)
    d = add_point(scene, 5.0, 5.0)
    vertical = add_line(scene, c.id, d.id)
    (crossing,) = add_intersection(scene, ParentRef('line', line.id), ParentRef('line', vertical.id))
    midpoint = add_midpoint(scene, a.id, b.id)
    parallel = add_parallel_line(scene, c.id, line.id)
    session = DragSession(scene)
    assert not session.begin('point', crossing.id, crossing.pos)
    assert not session.begin('point', midpoint.id, midpoint.pos)
    assert not session.begin('point', parallel.parallel.helper_point, (0.0, 0.0))
    assert not session.begin('point', 'P404', (0.0, 0.0))
    assert not session.dragging


def test_line_drag_translates_and_cancel_restores():
    scene, a, b, line = slanted_scene(by=0.0)
    midpoint = add_midpoint(scene, a.id, b.id)
    rider = add_point_on_line(scene, line.id, 2.0, 0.0)
    session = DragSession(scene)
    assert session.begin('line', line.id, (5.0, 0.0))
    session.move((5.0, 3.0))
    assert a.pos == pytest.approx((0.0, 3.0))
    assert b.pos == pytest.approx((10.0, 3.0))
    assert midpoint.pos == pytest.approx((5.0, 3.0))
    assert rider.pos == pytest.approx((2.0, 3.0))

    session.cancel()
    assert not session.dragging
    assert a.pos == pytest.approx((0.0, 0.0))
    assert b.pos == pytest.approx((10.0, 0.0))
    assert midpoint.pos == pytest.approx((5.0, 0.0))
    assert rider.pos == pytest.approx((2.0, 0.0))


def test_circle_drag_moves_center_and_radius_point():
    scene = Scene()
    o1 = add_point(scene, 0.0, 0.0)
    r1 = add_point(scene, 5.0, 0.0)
    o2 = add_point(scene, 8.0, 0.0)
    r2 = add_point(scene, 13.0, 0.0)
    first = add_circle(scene, o1.id, r1.id)
    second = add_circle(scene, o2.id, r2.id)
    roots = add_intersection(scene, ParentRef('circle', first.id), ParentRef('circle', second.id))

    session = DragSession(scene)
    assert session.begin('circle', second.id, (8.0, 0.0))
    session.move((10.0, 0.0))
    changed = session.end()
    assert o2.pos == pytest.approx((10.0, 0.0))
    assert r2.pos == pytest.approx((15.0, 0.0))
    visible = [p for p in roots if not p.hidden]
    assert len(visible) == 1
    assert visible[0].pos == pytest.approx((5.0, 0.0))
    assert {o2.id, r2.id} <= set(changed)


def test_polygon_drag_translates_every_free_vertex():
    scene = Scene()
    ids = [add_point(scene, x, y).id for x, y in [(0.0, 0.0), (4.0, 0.0), (4.0, 3.0)]]
    polygon = add_polygon(scene, ids)
    session = DragSession(scene)
    assert session.begin('polygon', polygon.id, (1.0, 1.0))
    session.end((2.0, -1.0))
    assert [scene.point(pid).pos for pid in ids] == [
        pytest.approx((1.0, -2.0)),
        pytest.approx((5.0, -2.0)),
        pytest.approx((5.0, 1.0)),
    ]


def test_begin_commits_an_unfinished_drag():
    scene, a, b, line = slanted_scene(by=5.0)
    snapshots = []
    session = DragSession(scene, history=snapshots.append)
    session.begin('point', b.id, (10.0, 5.0))
    session.move((12.0, 5.0))
    assert session.begin('point', a.id, (0.0, 0.0))
    assert len(snapshots) == 1
    assert session.state.target_id == a.id


def test_line_drag_with_a_derived_endpoint_is_flagged_partial(caplog):
    scene = Scene()
    a = add_point(scene, 0.0, 0.0)
    g = add_point(scene, 10.0, -5.0)
    h = add_point(scene, 10.0, 5.0)
    rail = add_line(scene, g.id, h.id)
    b = add_point_on_line(scene, rail.id, 10.0, 0.0)
    line = add_line(scene, a.id, b.id)
    session = DragSession(scene)
    with caplog.at_level(logging.DEBUG, logger='geoscene.drag'):
        assert session.begin('line', line.id, (5.0, 0.0))
    assert session.state.partial
    assert session.state.moving == [a.id]
    assert any('Partial drag' in record.getMessage() for record in caplog.records)

    session.move((5.0, 3.0))
    assert a.pos == pytest.approx((0.0, 3.0))
    assert b.pos == pytest.approx((10.0, 0.0))
    session.end()


def test_line_drag_with_free_endpoints_is_not_partial():
    scene, a, b, line = slanted_scene(by=0.0)
    session = DragSession(scene)
    session.begin('line', line.id, (5.0, 0.0))
    assert not session.state.partial
    session.cancel()
