import io
import threading

import pytest
from drip.drip_datatypes import Context, Literal, Variable, ValueFilter, PyFilter
from drip.drip_errors import DripError, EvaluationError, RenderError
from drip.drip_filters import FilterCall, FilterChain
from drip.drip_stdlib import FilterRegistry


class Recorder(ValueFilter):
    """Appends its name to the input and records every call it receives."""
    def __init__(self, name, log):
        self.name = name
        self.log = log

    def filter(self, input, arguments):
        self.log.append((self.name, input, tuple(arguments)))
        return input + self.name


class Boom(ValueFilter):
    def __init__(self, log=None):
        self.log = log if log is not None else []

    def filter(self, input, arguments):
        self.log.append(input)
        raise ValueError("kaboom")


class ExplodingExpression(Literal):
    def __init__(self):
        super().__init__(None)

    def evaluate(self, context):
        raise EvaluationError("Unknown variable").context_key("requested variable", "missing")


class CountingExpression(Literal):
    def __init__(self, value, log):
        super().__init__(value)
        self.log = log

    def evaluate(self, context):
        self.log.append(self.value)
        return self.value


class BrokenSink:
    def __init__(self):
        self.calls = 0

    def write(self, text):
        self.calls += 1
        raise OSError("disk full")


@pytest.fixture
def registry():
    return FilterRegistry.with_stdlib()


@pytest.fixture
def context():
    return Context({"title": "hello world", "n": 3, "tags": ["a", "b"]})


# --- FilterChain.evaluate ---

def test_empty_chain_evaluates_to_entry(context):
    entry = Variable.parse("tags")
    chain = FilterChain(entry, [])
    assert chain.evaluate(context) == entry.evaluate(context)
    assert chain.evaluate(context) is context["tags"]


def test_filters_apply_left_to_right():
    log = []
    chain = FilterChain(Literal("base"), [
        FilterCall("f", Recorder("f", log)),
        FilterCall("g", Recorder("g", log)),
    ])
    assert chain.evaluate(Context()) == "basefg"
    assert log == [("f", "base", ()), ("g", "basef", ())]


def test_upcase_then_truncate(registry, context):
    chain = FilterChain(Variable.parse("title"), [
        registry.call("upcase"),
        registry.call("truncate", 5),
    ])
    assert chain.evaluate(context) == "HELLO"


def test_chain_can_be_evaluated_repeatedly(registry):
    chain = FilterChain(Variable.parse("name"), [registry.call("append", "!")])
    assert chain.evaluate(Context({"name": "a"})) == "a!"
    assert chain.evaluate(Context({"name": "b"})) == "b!"


def test_arguments_evaluated_against_context(registry, context):
    chain = FilterChain(Literal("x"), [registry.call("append", Variable.parse("tags[1]"))])
    assert chain.evaluate(context) == "xb"


def test_arguments_evaluated_in_order_every_call():
    log = []
    call = FilterCall("pair", PyFilter(lambda v, a, b: (v, a, b)), [
        CountingExpression(1, log),
        CountingExpression(2, log),
    ])
    assert call.evaluate(Context(), "v") == ("v", 1, 2)
    assert call.evaluate(Context(), "w") == ("w", 1, 2)
    assert log == [1, 2, 1, 2]


# --- Failures ---

def test_failing_filter_stops_the_chain():
    log = []
    boom_log = []
    chain = FilterChain(Literal("in"), [
        FilterCall("f", Recorder("f", log)),
        FilterCall("boom", Boom(boom_log), [Literal(1), Literal("two")]),
        FilterCall("g", Recorder("g", log)),
    ])
    with pytest.raises(EvaluationError) as excinfo:
        chain.evaluate(Context())
    err = excinfo.value
    assert [entry[0] for entry in log] == ["f"]
    assert boom_log == ["inf"]
    assert err.message == "Filter error"
    assert err.get_context("filter") == "boom: 1, two"
    assert err.get_context("input") == "inf"
    assert err.get_context("args") == "1, two"
    assert isinstance(err.cause, ValueError)
    assert err.__cause__ is err.cause
    assert err.root_cause() is err.cause


def test_filter_error_context_uses_evaluated_arguments(context):
    call = FilterCall("boom", Boom(), [Variable.parse("n"), Variable.parse("tags")])
    with pytest.raises(EvaluationError) as excinfo:
        call.evaluate(context, "x")
    # Display uses the expressions, args use the values they evaluated to
    assert excinfo.value.get_context("filter") == "boom: n, tags"
    assert excinfo.value.get_context("args") == "3, ab"


def test_filter_error_message_includes_context_and_cause():
    call = FilterCall("boom", Boom(), [Literal(5)])
    with pytest.raises(EvaluationError) as excinfo:
        call.evaluate(Context(), "hi")
    msg = str(excinfo.value)
    assert msg.splitlines()[0] == "Filter error"
    assert "    filter=boom: 5" in msg
    assert "    input=hi" in msg
    assert "    args=5" in msg
    assert msg.endswith("from: ValueError: kaboom")


def test_filter_error_context_is_lazy():
    rendered = []

    class Loud(Literal):
        def __str__(self):
            rendered.append(self.value)
            return super().__str__()

    ok = FilterCall("id", PyFilter(lambda v, a: v), [Loud("arg")])
    assert ok.evaluate(Context(), "x") == "x"
    assert rendered == []

    bad = FilterCall("boom", Boom(), [Loud("arg")])
    with pytest.raises(EvaluationError) as excinfo:
        bad.evaluate(Context(), "x")
    assert rendered == []
    assert excinfo.value.get_context("filter") == "boom: arg"
    assert rendered == ["arg"]


def test_argument_failure_propagates_unchanged():
    boom_log = []
    call = FilterCall("boom", Boom(boom_log), [Literal(1), ExplodingExpression(), Literal(3)])
    with pytest.raises(EvaluationError) as excinfo:
        call.evaluate(Context(), "x")
    err = excinfo.value
    assert err.message == "Unknown variable"
    assert err.cause is None
    assert err.get_context("filter") is None
    assert boom_log == []


def test_entry_failure_propagates_unchanged(registry):
    chain = FilterChain(Variable.parse("missing"), [registry.call("upcase")])
    with pytest.raises(EvaluationError) as excinfo:
        chain.evaluate(Context({"present": 1}))
    err = excinfo.value
    assert err.message == "Unknown variable"
    assert err.get_context("requested variable") == "missing"
    assert err.get_context("available variables") == "present"


def test_nested_filter_errors_wrap_the_inner_error():
    inner = FilterCall("boom", Boom(), [])
    outer = FilterCall("outer", PyFilter(lambda v: inner.evaluate(Context(), v)))
    with pytest.raises(EvaluationError) as excinfo:
        outer.evaluate(Context(), "x")
    err = excinfo.value
    assert isinstance(err.cause, EvaluationError)
    assert isinstance(err.root_cause(), ValueError)
    assert "from: Filter error" in str(err)


# --- Display ---

def test_chain_display(registry):
    chain = FilterChain(Literal("x"), [registry.call("upcase"), registry.call("truncate", 5)])
    assert str(chain) == "x | upcase: | truncate: 5"


@pytest.mark.parametrize(
    "args,expected",
    [
        ((), "append:"),
        ((Literal("a"),), "append: a"),
        ((Literal(1), Variable.parse("user.name")), "append: 1, user.name"),
    ],
    ids=["no_args", "one_arg", "two_args"],
)
def test_call_display(args, expected):
    call = FilterCall("append", PyFilter(lambda v, *a: v), args)
    assert str(call) == expected


def test_empty_chain_display():
    assert str(FilterChain(Variable.parse("page.title"))) == "page.title"


# --- Rendering ---

def test_render_to_writes_once(registry, context):
    chain = FilterChain(Variable.parse("title"), [registry.call("upcase")])

    class Sink:
        def __init__(self):
            self.writes = []

        def write(self, text):
            self.writes.append(text)

    sink = Sink()
    assert chain.render_to(sink, context) is None
    assert sink.writes == ["HELLO WORLD"]


def test_render_uses_canonical_text(registry, context):
    chain = FilterChain(Variable.parse("tags"), [registry.call("reverse")])
    buf = io.StringIO()
    chain.render_to(buf, context)
    assert buf.getvalue() == "ba"
    assert chain.render(context) == "ba"
    assert FilterChain(Literal(None)).render(context) == ""
    assert FilterChain(Literal(True)).render(context) == "true"


def test_render_failure_is_render_error():
    sink = BrokenSink()
    chain = FilterChain(Literal("x"))
    with pytest.raises(RenderError) as excinfo:
        chain.render_to(sink, Context())
    err = excinfo.value
    assert not isinstance(err, EvaluationError)
    assert isinstance(err.cause, OSError)
    assert err.message == "Failed to render"
    assert sink.calls == 1


def test_render_propagates_evaluation_error_without_writing():
    sink = BrokenSink()
    chain = FilterChain(Literal("x"), [FilterCall("boom", Boom())])
    with pytest.raises(EvaluationError):
        chain.render_to(sink, Context())
    assert sink.calls == 0


def test_errors_share_a_base_class():
    assert issubclass(EvaluationError, DripError)
    assert issubclass(RenderError, DripError)
    assert not issubclass(RenderError, EvaluationError)


def test_chain_shared_across_threads(registry):
    chain = FilterChain(Variable.parse("name"), [registry.call("upcase"), registry.call("append", "!")])
    results = {}

    def worker(i):
        results[i] = chain.render(Context({"name": f"n{i}"}))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results == {i: f"N{i}!" for i in range(8)}
