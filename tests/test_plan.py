import pytest

from composedtask.graph import (
    CycleError,
    Label,
    LaunchDirective,
    MalformedGraphError,
    Sequence,
    Split,
    SplitPlan,
    Task,
    compile_graph,
)


def _seq(*children) -> Sequence:
    return Sequence(tuple(children))


def _split(*branches) -> Split:
    return Split(tuple(branches))


def test_single_task_compiles_to_one_directive():
    plan = compile_graph(Task("AAA"))

    assert isinstance(plan.root, LaunchDirective)
    assert plan.root.step_name == "AAA_0"
    assert plan.root.task_name == "AAA"
    assert plan.trace == ("task:AAA_0",)


def test_sequence_with_split_keeps_document_order():
    plan = compile_graph(_seq(Task("A"), _split(Task("B"), Task("C")), Task("D")))

    assert plan.step_names() == ["A_0", "B_0", "C_0", "D_0"]
    assert plan.trace == (
        "sequence:push",
        "task:A_0",
        "split:push",
        "task:B_0",
        "task:C_0",
        "split:boundary",
        "task:D_0",
        "sequence:pop",
    )
    assert isinstance(plan.root.entries[1], SplitPlan)


def test_repeated_task_gets_unique_step_names():
    plan = compile_graph(_seq(Task("A"), Task("A"), _split(Task("A"), Task("B"))))
    assert plan.step_names() == ["A_0", "A_1", "A_2", "B_0"]
    assert plan.task_names() == frozenset({"A", "B"})


def test_labelled_task_is_named_after_its_label():
    plan = compile_graph(_seq(Task("A", label="first"), Task("A")))
    assert plan.step_names() == ["first_0", "A_0"]
    assert [d.task_name for d in plan.directives()] == ["A", "A"]


def test_directive_carries_task_arguments_and_properties():
    plan = compile_graph(Task("A", properties={"k": "v"}, arguments=("--x=1",)))

    assert plan.root.properties == {"k": "v"}
    assert plan.root.arguments == ("--x=1",)


def test_label_resolves_to_its_task():
    plan = compile_graph(
        _seq(
            Task("AAA", label="a", arguments=("--x=1",)),
            Label("again", "a"),
        )
    )
    directives = list(plan.directives())

    assert directives[1].step_name == "again_0"
    assert directives[1].task_name == "AAA"
    assert directives[1].arguments == ("--x=1",)
    assert "label:again_0->AAA" in plan.trace


def test_label_chain_resolves_through_labels():
    plan = compile_graph(
        _seq(Task("AAA", label="a"), Label("b", "a"), Label("c", "b"))
    )
    assert [d.task_name for d in plan.directives()] == ["AAA", "AAA", "AAA"]


def test_compile_is_idempotent():
    graph = _seq(Task("A"), _split(Task("B"), _seq(Task("C"), Task("A"))), Task("D"))
    assert compile_graph(graph) == compile_graph(graph)


def test_label_cycle_raises_cycle_error():
    graph = _seq(Label("x", "y"), Label("y", "x"))
    with pytest.raises(CycleError) as exc:
        compile_graph(graph)

    assert exc.value.cycle == ["x", "y", "x"]
    assert "Cycle detected" in str(exc.value)


def test_label_to_itself_is_a_cycle():
    with pytest.raises(CycleError):
        compile_graph(Label("x", "x"))


def test_cycle_error_is_a_malformed_graph_error():
    with pytest.raises(MalformedGraphError):
        compile_graph(_seq(Label("x", "y"), Label("y", "x")))


@pytest.mark.parametrize(
    "graph",
    [
        _seq(),
        _split(),
        _seq(Task("A"), _split()),
        Task("   "),
        Label("x", "nope"),
        _seq(Task("A", label="a"), Task("B", label="a")),
        _seq(Task("A", label="a"), Label("a", "a")),
        _seq(Task("A", label=" ")),
        "AAA",
    ],
)
def test_malformed_graphs_raise(graph):
    with pytest.raises(MalformedGraphError):
        compile_graph(graph)
