from studio.workflow.bindings import (
    ConstantBinding,
    RunInputBinding,
    StepOutputBinding,
    has_meaningful_value,
    normalize_path_segment,
    parse_binding,
    parse_bindings,
    run_input_key,
    serialize_bindings,
    step_output_path,
)


def test_parse_run_input_paths():
    assert parse_binding("$.input") == RunInputBinding()
    assert parse_binding("$.input.doc_ids") == RunInputBinding(path="doc_ids")
    assert parse_binding("  input.folder_path ") == RunInputBinding(path="folder_path")


def test_parse_step_output_paths():
    assert parse_binding("$.steps.list_1.output") == StepOutputBinding(step_id="list_1")
    assert parse_binding("$.steps.list_1.output.doc_ids") == StepOutputBinding(
        step_id="list_1", path="doc_ids",
    )


def test_parse_literals_as_constants():
    assert parse_binding("hello") == ConstantBinding(value="hello")
    assert parse_binding(42) == ConstantBinding(value=42)
    assert parse_binding(["a", "b"]) == ConstantBinding(value=["a", "b"])


def test_parse_object_rows():
    assert parse_binding({"source": "step_output", "step_id": "ai_1", "path": "output.text"}) == (
        StepOutputBinding(step_id="ai_1", path="text")
    )
    assert parse_binding({"source": "run_input", "path": "$.input.doc_ids"}) == RunInputBinding(path="doc_ids")
    assert parse_binding({"source": "constant", "value": 3}) == ConstantBinding(value=3)


def test_object_row_with_full_step_path():
    row = {"source": "step_output", "path": "$.steps.read_1.output.text"}
    assert parse_binding(row) == StepOutputBinding(step_id="read_1", path="text")


def test_step_output_path_drops_output_prefix():
    assert step_output_path("a", "output.text") == "$.steps.a.output.text"
    assert step_output_path("a", "output") == "$.steps.a.output"
    assert step_output_path("a", "output_text") == "$.steps.a.output.output_text"
    assert step_output_path("a") == "$.steps.a.output"


def test_to_wire():
    assert RunInputBinding(path="doc_ids").to_wire() == "$.input.doc_ids"
    assert StepOutputBinding(step_id="x", path="records").to_wire() == "$.steps.x.output.records"
    assert ConstantBinding(value={"k": 1}).to_wire() == {"k": 1}


def test_parse_bindings_skips_blank_targets():
    parsed = parse_bindings({"": "$.input", " doc_ids ": "$.input.doc_ids"})
    assert parsed == {"doc_ids": RunInputBinding(path="doc_ids")}
    assert parse_bindings(None) == {}


def test_serialize_drops_step_rows_without_step_id():
    wire = serialize_bindings({
        "doc_ids": StepOutputBinding(step_id="list_1", path="doc_ids"),
        "text": StepOutputBinding(step_id="", path="text"),
        "limit": ConstantBinding(value=5),
    })
    assert wire == {"doc_ids": "$.steps.list_1.output.doc_ids", "limit": 5}


def test_run_input_key():
    assert run_input_key("$.input.doc_ids[0].id") == "doc_ids"
    assert run_input_key("input.folder_path") == "folder_path"
    assert run_input_key("$.input") is None
    assert run_input_key(RunInputBinding(path="doc_id")) == "doc_id"
    assert run_input_key(StepOutputBinding(step_id="a")) is None


def test_normalize_path_segment():
    assert normalize_path_segment("docs[2].title") == "docs"
    assert normalize_path_segment("  ") == ""


def test_meaningful_values():
    assert not has_meaningful_value(None)
    assert not has_meaningful_value("   ")
    assert not has_meaningful_value([])
    assert not has_meaningful_value({})
    assert not has_meaningful_value(ConstantBinding(value=""))
    assert has_meaningful_value(0)
    assert has_meaningful_value(False)
    assert has_meaningful_value(RunInputBinding())
    assert has_meaningful_value(StepOutputBinding(step_id="a"))
    assert has_meaningful_value(ConstantBinding(value=["x"]))
