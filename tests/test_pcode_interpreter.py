import pytest

from pcode.pcode_interpreter import Evaluator, collapse
from pcode.pcode_parser import parse
from pcode.pcode_datatypes import (
    Context, Deferred, Value,
    UnknownIdentifier, NotCallable, UnsupportedVariableKind,
)


def _add(a, b):
    return a + b


@pytest.fixture
def evaluator():
    return Evaluator(Context({"+": _add}))


def test_collapse():
    assert collapse([]) == []
    assert collapse([1.0]) == 1.0
    assert collapse([1.0, 2.0]) == [1.0, 2.0]
    assert collapse([[1.0]]) == [1.0]


def test_root_context_cannot_have_a_parent():
    with pytest.raises(ValueError):
        Evaluator(Context(parent=0))


def test_arena_handles(evaluator):
    a = evaluator.new_context(0)
    b = evaluator.new_context(a)
    assert (a, b) == (1, 2)
    assert evaluator.contexts[b].parent == a
    with pytest.raises(IndexError):
        evaluator.new_context(99)


def test_fetch_walks_parents_and_assign_stays_local(evaluator):
    evaluator.assign(0, "x", 1.0)
    child = evaluator.new_context(0)
    assert evaluator.fetch(child, "x") == 1.0
    evaluator.assign(child, "x", 2.0)
    assert evaluator.fetch(child, "x") == 2.0
    assert evaluator.fetch(0, "x") == 1.0
    with pytest.raises(UnknownIdentifier):
        evaluator.fetch(child, "nope")


@pytest.mark.asyncio
async def test_eval_values_and_calls(evaluator):
    assert await evaluator.eval(parse('"hi"')) == "hi"
    assert await evaluator.eval(parse("3+2+7")) == 12.0


@pytest.mark.asyncio
async def test_assignments_contribute_no_value(evaluator):
    assert await evaluator.eval(parse("x <- 1")) == []
    assert await evaluator.eval(parse("x <- 1\ny <- 2")) == []
    assert await evaluator.eval(parse("x <- 1\nx\nx + 1")) == [1.0, 2.0]


@pytest.mark.asyncio
async def test_block_opens_a_child_scope(evaluator):
    result = await evaluator.eval(parse("x <- 1\n{\nx <- 2\nx\n}\nx"))
    assert result == [2.0, 1.0]
    # program block plus the inner block
    assert len(evaluator.contexts) == 3


@pytest.mark.asyncio
async def test_operator_rebinding_in_child_scope(evaluator):
    child = evaluator.new_context(0)
    evaluator.assign(child, "+", lambda a, b: a * b)
    assert await evaluator.eval(parse("3+2"), child) == 6.0
    assert await evaluator.eval(parse("3+2"), 0) == 5.0


@pytest.mark.asyncio
async def test_single_list_argument_is_spread(evaluator):
    seen = []
    evaluator.assign(0, "pair", lambda: [1.0, 2.0])
    evaluator.assign(0, "count", lambda *args: seen.append(args))
    assert await evaluator.eval(parse("count(pair())")) == []
    assert seen == [(1.0, 2.0)]


@pytest.mark.asyncio
async def test_async_builtins_are_awaited_and_results_normalized(evaluator):
    async def later(x):
        return 7

    evaluator.assign(0, "later", later)
    result = await evaluator.eval(parse("later(1)"))
    assert result == 7.0 and isinstance(result, float)


@pytest.mark.asyncio
async def test_reading_a_function_as_a_variable_fails(evaluator):
    evaluator.assign(0, "add", _add)
    with pytest.raises(UnsupportedVariableKind):
        await evaluator.eval(parse("x <- 1 + 2\nadd"))


@pytest.mark.asyncio
async def test_calling_a_value_fails(evaluator):
    with pytest.raises(NotCallable):
        await evaluator.eval(parse("x <- 3\nx(1)"))


@pytest.mark.asyncio
async def test_unknown_identifier(evaluator):
    with pytest.raises(UnknownIdentifier) as exc:
        await evaluator.eval(parse("y"))
    assert exc.value.name == "y"


@pytest.mark.asyncio
async def test_lambda_evaluates_to_deferred_and_force_runs_it(evaluator):
    deferred = await evaluator.eval(parse("LAMBDA 3"))
    assert deferred == Deferred(Value(3.0))
    before = len(evaluator.contexts)
    assert await evaluator.force(deferred) == 3.0
    assert len(evaluator.contexts) == before + 1
    assert await evaluator.force(5.0) == 5.0


@pytest.mark.asyncio
async def test_call_stack_is_popped_on_return(evaluator):
    await evaluator.eval(parse("1 + 2"))
    assert evaluator.call_stack == []


@pytest.mark.asyncio
async def test_failed_call_leaves_its_frame(evaluator):
    def boom(x):
        raise RuntimeError("boom")

    evaluator.assign(0, "boom", boom)
    with pytest.raises(RuntimeError):
        await evaluator.eval(parse("boom(4)"))
    assert evaluator.call_stack[-1]['name'] == "boom"
    assert evaluator.call_stack[-1]['args'] == [4.0]
    assert evaluator.call_stack[-1]['call_site'] == {'line': 1, 'col': 1}


@pytest.mark.asyncio
async def test_debug_trace_goes_to_stderr(evaluator, monkeypatch, capsys):
    monkeypatch.setenv("PCODE_DEBUG", "1")
    await evaluator.eval(parse("1 + 2"))
    err = capsys.readouterr().err
    assert "[DBG] call + argc 2" in err


@pytest.mark.asyncio
async def test_no_debug_trace_by_default(evaluator, monkeypatch, capsys):
    monkeypatch.delenv("PCODE_DEBUG", raising=False)
    await evaluator.eval(parse("1 + 2"))
    assert "[DBG]" not in capsys.readouterr().err
