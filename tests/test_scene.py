import json

import pytest

from geoscene import (
    ConstructionError,
    EngineConfig,
    ParentRef,
    Scene,
    UnknownEntityError,
    add_circle,
    add_intersection,
    add_line,
    add_midpoint,
    add_parallel_line,
    add_point,
    add_polygon,
    add_angle,
    add_symmetric_point,
    get_engine_config,
    recompute_all,
    set_engine_config,
)


def build_scene() -> Scene:
    scene = Scene()
    a = add_point(scene, 0.0, 0.0, label='A')
    b = add_point(scene, 10.0, 0.0, label='B')
    c = add_point(scene, 0.0, 10.0, label='C')
    ab = add_line(scene, a.id, b.id)
    ac = add_line(scene, a.id, c.id)
    add_midpoint(scene, b.id, c.id)
    add_parallel_line(scene, c.id, ab.id)
    add_circle(scene, a.id, b.id)
    add_symmetric_point(scene, c.id, 'line', ab.id)
    add_intersection(scene, ParentRef('line', ac.id), ParentRef('circle', 'C1'))
    add_angle(scene, a.id, ab.id, ac.id)
    return scene


def test_ids_are_stable_and_prefixed():
    scene = Scene()
    p1 = add_point(scene, 0.0, 0.0)
    p2 = add_point(scene, 1.0, 0.0)
    line = add_line(scene, p1.id, p2.id)
    assert (p1.id, p2.id, line.id) == ('P1', 'P2', 'L1')
    assert scene.point_index == {'P1': 0, 'P2': 1}
    scene.remove('point', ['P1'])
    assert scene.point_index == {'P2': 0}
    p3 = add_point(scene, 2.0, 2.0)
    assert p3.id == 'P3'


def test_unknown_lookup_raises():
    scene = Scene()
    with pytest.raises(UnknownEntityError):
        scene.point('P404')
    assert scene.get('line', 'L1') is None


def test_children_of_reports_dependents():
    scene = build_scene()
    children = scene.children_of('L1')
    # parallel line through C, reflection of C, angle leg
    assert 'L3' in children
    assert 'A1' in children
    mirrored = [p.id for p in scene.points if p.construction_kind == 'symmetric']
    assert mirrored and mirrored[0] in children
    assert 'L1' in scene.children_of('P1')
    assert 'C1' in scene.children_of('P2')


def test_to_dict_is_json_compatible_and_round_trips():
    scene = build_scene()
    data = scene.to_dict()
    text = json.dumps(data)
    restored = Scene.from_dict(json.loads(text))
    assert restored.to_dict() == data
    assert restored.counters == scene.counters
    assert set(data) == {'points', 'lines', 'circles', 'angles', 'polygons', 'counters'}


def test_parallel_metadata_uses_plain_keys():
    scene = build_scene()
    line = scene.to_dict()['lines'][2]
    assert set(line['parallel']) == {
        'throughPoint',
        'referenceLine',
        'helperPoint',
        'helperDistance',
        'helperOrientation',
    }


def test_loaded_scene_keeps_allocating_fresh_ids():
    scene = build_scene()
    data = scene.to_dict()
    data['counters'] = {}
    restored = Scene.from_dict(data)
    fresh = add_point(restored, 3.0, 3.0)
    assert fresh.id not in {p['id'] for p in data['points']}


def test_loaded_scene_recomputes_consistently():
    scene = build_scene()
    data = scene.to_dict()
    # simulate a stale midpoint written by an older session
    for raw in data['points']:
        if raw['construction_kind'] == 'midpoint':
            raw['x'] = 99.0
    restored = Scene.from_dict(data)
    recompute_all(restored)
    midpoint = next(p for p in restored.points if p.construction_kind == 'midpoint')
    assert midpoint.pos == pytest.approx((5.0, 5.0))


def test_polygon_round_trip():
    scene = Scene()
    ids = [add_point(scene, x, y).id for x, y in [(0.0, 0.0), (4.0, 0.0), (4.0, 3.0)]]
    add_polygon(scene, ids)
    restored = Scene.from_dict(scene.to_dict())
    assert restored.polygons[0].lines == scene.polygons[0].lines


def test_engine_config_is_copied_per_scene():
    original = get_engine_config()
    try:
        set_engine_config(EngineConfig(min_radius=0.5))
        scene = Scene()
        assert scene.config.min_radius == 0.5
        scene.config.min_radius = 2.0
        assert get_engine_config().min_radius == 0.5
        a = add_point(scene, 0.0, 0.0)
        b = add_point(scene, 1.0, 0.0)
        with pytest.raises(ConstructionError):
            add_circle(scene, a.id, b.id)
    finally:
        set_engine_config(original)
