"""Tests for the sequential driver."""

import pytest

from freighter.core.driver import apply_and_wait, deploy_chain, ensure_owner, wait_ready
from freighter.pacts.errors import ReadinessTimeout, StatusQueryError
from freighter.pacts.types import Ads, Status


class FakeComponent:
    """Becomes ready after a fixed number of status polls."""

    def __init__(self, name, polls_until_ready=0, advertises=None, status_error=None):
        self.name = name
        self.polls_until_ready = polls_until_ready
        self.advertises = advertises or {}
        self.status_error = status_error
        self.received = None
        self.polls = 0
        self._overlay = ""

    def apply(self, overlay, ads):
        self.received = ads
        self._overlay = overlay

    def status(self):
        self.polls += 1
        if self.status_error:
            raise self.status_error
        return Status(ready=self.polls > self.polls_until_ready, message=f"poll {self.polls}")

    def advertise(self):
        return Ads(self.advertises)

    def current_overlay(self):
        return self._overlay


class TestWaitReady:
    def test_polls_until_ready(self):
        comp = FakeComponent("a", polls_until_ready=3)
        sleeps = []
        wait_ready(comp, interval=2, sleep=sleeps.append)
        assert sleeps == [2, 2, 2]
        assert comp.polls == 4

    def test_status_error_is_fatal(self):
        comp = FakeComponent("a", polls_until_ready=5, status_error=StatusQueryError("gone"))
        with pytest.raises(StatusQueryError):
            wait_ready(comp, sleep=lambda s: None)
        assert comp.polls == 1

    def test_timeout(self):
        comp = FakeComponent("a", polls_until_ready=100)
        now = {"t": 0.0}

        def sleep(seconds):
            now["t"] += seconds

        with pytest.raises(ReadinessTimeout, match="not ready after 3"):
            wait_ready(comp, interval=1, timeout=3, sleep=sleep, clock=lambda: now["t"])
        assert comp.polls == 4


class TestChain:
    def test_apply_and_wait_returns_ads(self):
        comp = FakeComponent("db", advertises={"dbhost": "h"})
        ads = apply_and_wait(comp, "base", Ads({"in": "1"}), sleep=lambda s: None)
        assert comp.received == Ads({"in": "1"})
        assert comp.current_overlay() == "base"
        assert ads == Ads({"dbhost": "h"})

    def test_each_component_gets_previous_ads(self):
        db = FakeComponent("db", polls_until_ready=1, advertises={"dbhost": "h"})
        app = FakeComponent("app", advertises={"addr": "a"})
        out = deploy_chain([db, app], "base", sleep=lambda s: None)
        assert db.received == Ads()
        assert app.received == Ads({"dbhost": "h"})
        assert out == Ads({"addr": "a"})


class TestEnsureOwner:
    def test_creates_then_reuses(self, store):
        first = ensure_owner(store, "ns", "owner")
        second = ensure_owner(store, "ns", "owner")
        assert first == second
        assert first["kind"] == "ConfigMap"
        assert first["name"] == "owner"
        assert first["uid"]
        assert len(store.created) == 1
