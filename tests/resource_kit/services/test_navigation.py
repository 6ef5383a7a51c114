from __future__ import annotations

from resource_kit.services.navigation import InMemoryLocation, InMemoryNavigator, edit_url, get_url_param


def test_edit_url_sets_replaces_and_removes_params():
    url = "/list?page=2&search=abc#top"

    assert edit_url(url, {"page": 3, "search": None, "open": True}) == "/list?page=3&open=true#top"


def test_edit_url_encodes_unless_asked_not_to():
    assert edit_url("/list", {"q": "a b", "ids": [1, 2]}) == "/list?q=a+b&ids=1%2C2"
    assert edit_url("/list", {"q": "a b"}, encode=False) == "/list?q=a b"


def test_get_url_param_keeps_blank_values():
    assert get_url_param("/list?q=&page=1", "q") == ""
    assert get_url_param("/list?page=1", "q") is None


def test_navigator_tracks_history_and_pop_state():
    location = InMemoryLocation("/a")
    navigator = InMemoryNavigator(location)
    changes = []
    navigator.on_route_change(changes.append)

    navigator.go("/b")
    assert not navigator.is_pop_state()

    assert navigator.back() is True
    assert navigator.is_pop_state()
    assert location.get_url() == "/a"
    assert navigator.back() is False

    assert navigator.forward() is True
    assert location.get_url() == "/b"
    assert changes == ["/b", "/a", "/b"]


def test_go_drops_forward_history():
    navigator = InMemoryNavigator(InMemoryLocation("/a"))
    navigator.go("/b")
    navigator.back()

    navigator.go("/c")

    assert navigator.forward() is False
    assert navigator.location.get_query_param("x") is None
