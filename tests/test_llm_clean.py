from astock_research.workflows.nodes.llm_clean import clean_llm_output


def test_clean_llm_output_strips_thinking_and_quotes():
    raw = "*Thinking...*\n\n> step 1\n> step 2\n\nMain body text.\n\nMore."
    cleaned = clean_llm_output(raw)
    assert "Thinking" not in cleaned
    assert "step 1" not in cleaned
    assert cleaned.startswith("Main body text.")


def test_clean_llm_output_drops_think_blocks():
    raw = "<think>\n先分析财务数据\n</think>\n\n## 公司概况\n内容"
    assert clean_llm_output(raw) == "## 公司概况\n内容"


def test_clean_llm_output_handles_empty_input():
    assert clean_llm_output("") == ""
