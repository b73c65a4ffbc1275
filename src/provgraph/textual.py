"""Textual bindings for provgraph. Opt-in; requires textual.

A widget effect bound here runs only while its app can be queried: effects
are dropped while the app is not running or is inside pause(), and a
NoMatches raised by a widget query inside the effect is ignored. The core
graph never imports this module.
"""

from __future__ import annotations

from collections import Counter
from contextlib import contextmanager

from textual.css.query import NoMatches

# id(app) -> nesting depth of pause() blocks.
_pause_depth: Counter[int] = Counter()


@contextmanager
def pause(app):
    """Drop bound effects for app while its widget tree is being replaced."""
    key = id(app)
    _pause_depth[key] += 1
    try:
        yield
    finally:
        _pause_depth[key] -= 1
        if _pause_depth[key] <= 0:
            del _pause_depth[key]


def is_safe(app) -> bool:
    return app.is_running and _pause_depth[id(app)] == 0


def _guard(app, effect):
    def guarded(value):
        if not is_safe(app):
            return
        try:
            effect(value)
        except NoMatches:
            pass

    return guarded


def listen(app, container, provider, effect, *, fire_immediately=False):
    """Run effect(value) on app's widgets whenever provider changes.

    Usage:
        textual.listen(app, container, visible_library_albums,
                       lambda albums: app.query_one(AlbumList).update(albums))
    """
    return container.listen(provider, _guard(app, effect), fire_immediately=fire_immediately)


def listen_data(app, container, provider, effect, *, on_error=None, fire_immediately=False):
    """Like listen() for async providers: effect receives only Data values.

    Loading states are skipped. An Error state goes to on_error(exception)
    when given, else is skipped too.
    """

    def skip(*args):
        pass

    def unwrap(state):
        state.when(data=effect, loading=skip, error=on_error or skip)

    return listen(app, container, provider, unwrap, fire_immediately=fire_immediately)
