import logging

import numpy as np

from geoscene import Scene, add_line, add_point
from geoscene.logging_utils import _safe_repr, apply_debug_logging, debug_log_call


def test_safe_repr_summarizes_arrays_and_entities():
    assert _safe_repr(np.zeros((2, 3))).startswith('ndarray(shape=(2, 3)')
    assert 'min=' in _safe_repr(np.arange(10.0))
    scene = Scene()
    point = add_point(scene, 1.0, 2.0)
    assert _safe_repr(point) == point.summary()
    assert _safe_repr(list(range(8))).endswith('...]')


def test_debug_log_call_traces_only_when_enabled(caplog):
    logger = logging.getLogger('geoscene.tests.trace')
    calls = []

    @debug_log_call(logger)
    def double(value):
        calls.append(value)
        return value * 2

    with caplog.at_level(logging.INFO, logger=logger.name):
        assert double(2) == 4
    assert caplog.records == []

    with caplog.at_level(logging.DEBUG, logger=logger.name):
        assert double(3) == 6
    messages = [record.getMessage() for record in caplog.records]
    assert any(message.startswith('Entering') for message in messages)
    assert any('-> 6' in message for message in messages)
    assert calls == [2, 3]


def test_apply_debug_logging_skips_private_and_listed_names():
    namespace = {'__name__': 'geoscene.tests.namespace'}

    def public():
        return 1

    def _private():
        return 2

    def skipped():
        return 3

    for func in (public, _private, skipped):
        func.__module__ = namespace['__name__']
        namespace[func.__name__] = func

    apply_debug_logging(namespace, skip={'skipped'})
    assert getattr(namespace['public'], '_debug_logging_wrapped', False)
    assert namespace['_private'] is _private
    assert namespace['skipped'] is skipped


def test_engine_calls_are_traced_at_debug(caplog):
    scene = Scene()
    a = add_point(scene, 0.0, 0.0)
    b = add_point(scene, 1.0, 0.0)
    with caplog.at_level(logging.DEBUG, logger='geoscene.constructions'):
        add_line(scene, a.id, b.id)
    assert any('Entering add_line' in record.getMessage() for record in caplog.records)
