"""Tests for the ordered handler chain."""

from dataclasses import dataclass, field

from cdfsync.core.events import HandlerChain, HookContext


@dataclass
class _Ctx(HookContext):
    calls: list[str] = field(default_factory=list)


def _recorder(name, stop=False):
    def handler(ctx):
        ctx.calls.append(name)
        if stop:
            ctx.stop_propagation()

    return handler


class TestHandlerChain:
    def test_runs_by_descending_priority(self):
        chain = HandlerChain("test")
        chain.register(_recorder("low"), priority=10)
        chain.register(_recorder("high"), priority=100)
        chain.register(_recorder("mid"), priority=50)
        assert chain.dispatch(_Ctx()).calls == ["high", "mid", "low"]

    def test_registration_order_breaks_ties(self):
        chain = HandlerChain("test")
        chain.register(_recorder("first"))
        chain.register(_recorder("second"))
        assert chain.dispatch(_Ctx()).calls == ["first", "second"]

    def test_stop_propagation(self):
        chain = HandlerChain("test")
        chain.register(_recorder("a", stop=True), priority=2)
        chain.register(_recorder("b"), priority=1)
        ctx = chain.dispatch(_Ctx())
        assert ctx.calls == ["a"]
        assert ctx.propagation_stopped

    def test_unregister(self):
        chain = HandlerChain("test")
        handler = _recorder("a")
        chain.register(handler)
        assert chain.unregister(handler)
        assert not chain.unregister(handler)
        assert not chain.has_handlers()
        assert len(chain) == 0

    def test_empty_chain_returns_context(self):
        ctx = _Ctx()
        assert HandlerChain("empty").dispatch(ctx) is ctx
