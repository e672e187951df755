"""Tests for template scanning, assembly and rendering."""

import pytest

from labelforge.config import EngineConfig
from labelforge.scripting import ErrorKind, FunctionRegistry, ScriptResult
from labelforge.scripting.builtins import register_all_builtins
from labelforge.templates import (
    RenderMode,
    RendererUnavailableError,
    RenderServiceError,
    TemplateRenderer,
    analyze_template,
    assemble,
    extract_placeholders,
    extract_script_blocks,
    extract_script_variables,
    strip_script_blocks,
    substitute_placeholders,
)
from labelforge.templates.renderer import LabelSize
from labelforge.templates.services import Diagnostic, ValidationReport


@pytest.fixture(autouse=True)
def setup_functions():
    """Register built-in functions before each test."""
    FunctionRegistry.clear()
    register_all_builtins()
    yield
    FunctionRegistry.clear()


LABEL = """^XA
^FO50,50^FD<Shipment.Receiver.City>^FS
^FO50,100^FD<script>return ucase(Shipment.Receiver.ISOCountry)</script>^FS
^FO50,150^FD<SortCode>^FS
^FO50,200^FD<SCRIPT type="vb">
if Shipment.Status = "99" then
  return "ERROR"
end if
return Shipment.OrderNo
</Script>^FS
^XZ"""

CONTEXT = {
    "Shipment": {
        "OrderNo": "ORD-12345",
        "Status": "0",
        "Receiver": {"City": "Malmö", "ISOCountry": "se"},
    }
}


# =============================================================================
# Scanner
# =============================================================================


class TestScanner:
    def test_extract_placeholders(self):
        assert extract_placeholders(LABEL) == ["Shipment.Receiver.City", "SortCode"]

    def test_placeholders_are_distinct_and_sorted(self):
        assert extract_placeholders("<b> <a> <b>") == ["a", "b"]

    def test_placeholder_with_lookup(self):
        template = '^FD<Shipment.Attributes("SortCode")>^FS'
        assert extract_placeholders(template) == ['Shipment.Attributes("SortCode")']

    def test_reserved_names_are_not_placeholders(self):
        assert extract_placeholders("<check> <checkWeight> <script></script>") == []

    def test_extract_script_blocks(self):
        blocks = extract_script_blocks(LABEL)

        assert len(blocks) == 2
        assert blocks[0].source == "return ucase(Shipment.Receiver.ISOCountry)"
        assert blocks[1].index == 1
        assert "return Shipment.OrderNo" in blocks[1].source
        assert LABEL[blocks[1].start:blocks[1].end].startswith("<SCRIPT")
        assert LABEL[blocks[1].start:blocks[1].end].endswith("</Script>")

    def test_no_script_blocks(self):
        assert extract_script_blocks("^XA^XZ") == []

    def test_extract_script_variables(self):
        blocks = extract_script_blocks(LABEL)

        assert extract_script_variables(blocks) == [
            "Shipment.OrderNo",
            "Shipment.Receiver.ISOCountry",
            "Shipment.Status",
        ]

    def test_script_variables_strip_trailing_calls(self):
        blocks = extract_script_blocks(
            '<script>return Shipment.cr_time_db.ToString("dd") & Parcel.Attributes("X")</script>'
        )

        assert extract_script_variables(blocks) == ["Shipment.cr_time_db"]

    def test_script_variables_custom_roots(self):
        blocks = extract_script_blocks("<script>return Order.Id & Shipment.OrderNo</script>")
        assert extract_script_variables(blocks, roots=("Order",)) == ["Order.Id"]


# =============================================================================
# Assembler
# =============================================================================


class TestSubstitutePlaceholders:
    def test_exact_occurrences_only(self):
        text = substitute_placeholders("<SortCode> SortCode <sortcode>", {"SortCode": "S01"})
        assert text == "S01 SortCode <sortcode>"

    def test_empty_values_are_skipped(self):
        assert substitute_placeholders("<A><B>", {"A": "", "B": "2"}) == "<A>2"

    def test_values_are_not_substituted_again(self):
        text = substitute_placeholders("^FD<A>^FS", {"A": "<B>", "B": "x"})
        assert text == "^FD<B>^FS"

    def test_names_with_regex_characters(self):
        assert substitute_placeholders("<a.b>|<a+b>", {"a.b": "1", "a+b": "2"}) == "1|2"

    def test_no_values(self):
        assert substitute_placeholders("<A>", {}) == "<A>"


class TestAssemble:
    def test_splices_outputs(self):
        template = "a<script>x</script>b<script>y</script>c"
        results = [ScriptResult(True, "1"), ScriptResult(True, "2")]

        assert assemble(template, results).text == "a1b2c"

    def test_failed_block_is_removed_and_others_survive(self):
        template = "a<script>x</script>b<script>y</script>c"
        results = [
            ScriptResult(False, error="Unknown function: foo", error_kind=ErrorKind.AUTHORING),
            ScriptResult(True, "2"),
        ]

        assembled = assemble(template, results)

        assert assembled.text == "ab2c"
        assert assembled.has_failures
        assert assembled.failures[0].index == 0
        assert assembled.failures[0].to_dict() == {
            "index": 0,
            "message": "Unknown function: foo",
            "kind": "authoring",
        }

    def test_placeholders_substituted_after_scripts(self):
        template = "<script>x</script>|<Name>"
        assembled = assemble(template, [ScriptResult(True, "<Name>")], {"Name": "N"})

        assert assembled.text == "N|N"

    def test_result_count_must_match(self):
        with pytest.raises(ValueError):
            assemble("<script>x</script>", [])


# =============================================================================
# Renderer
# =============================================================================


class FakeValidator:
    def __init__(self):
        self.seen = []

    def validate(self, text):
        self.seen.append(text)
        if "^XZ" in text:
            return ValidationReport(valid=True)
        return ValidationReport(valid=False, diagnostics=[Diagnostic("Missing ^XZ", line=1)])


class FakeRasterRenderer:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def render(self, text, width_mm, height_mm, dots_per_mm):
        self.calls.append((text, width_mm, height_mm, dots_per_mm))
        if self.fail:
            raise ConnectionError("service down")
        return b"PNG"


class TestAnalyzeAndStrip:
    def test_analyze_template(self):
        analysis = analyze_template(LABEL)

        assert analysis.to_dict() == {
            "placeholders": ["Shipment.Receiver.City", "SortCode"],
            "scriptBlocks": 2,
            "scriptVariables": [
                "Shipment.OrderNo",
                "Shipment.Receiver.ISOCountry",
                "Shipment.Status",
            ],
            "hasPlaceholders": True,
            "hasScripts": True,
        }

    def test_strip_script_blocks(self):
        removal = strip_script_blocks(LABEL)

        assert "<script" not in removal.cleaned_template.lower()
        assert removal.script_count == 2
        assert removal.warnings == [
            "Script 1: return ucase(Shipment.Receiver.ISOCountry)",
            'Script 2: if Shipment.Status = "99" then',
        ]

    def test_strip_warning_preview_is_truncated(self):
        long_line = "x" * 60
        removal = strip_script_blocks(f"<script>{long_line}</script><script>  </script>")

        assert removal.script_count == 2
        assert removal.warnings == [f"Script 1: {'x' * 50}..."]


class TestTemplateRenderer:
    def test_auto_render(self):
        result = TemplateRenderer().render(LABEL, CONTEXT, {"SortCode": "S01"})

        assert result.success
        assert result.mode == RenderMode.AUTO
        assert "^FDSE^FS" in result.text
        assert "^FDORD-12345^FS" in result.text
        assert "^FDS01^FS" in result.text
        # Placeholders are operator input, never read from the context
        assert "<Shipment.Receiver.City>" in result.text
        assert result.warnings == []
        assert [r.output for r in result.block_results] == ["SE", "ORD-12345"]

    def test_failed_block_becomes_warning(self):
        template = "A<script>return nosuch()</script>B<script>return 1</script>C"

        result = TemplateRenderer().render(template)

        assert not result.success
        assert result.text == "AB1C"
        assert result.warnings == ["Script 1: Unknown function: nosuch"]

    def test_blocks_do_not_share_variables(self):
        template = "<script>x = 5\nreturn x</script>|<script>return x</script>"
        assert TemplateRenderer().render(template).text == "5|x"

    def test_blocks_cannot_modify_context(self):
        context = {"Shipment": {"OrderNo": "A"}}
        template = "<script>Shipment = 1\nreturn Shipment.OrderNo</script>"

        assert TemplateRenderer().render(template, context).text == "A"
        assert context == {"Shipment": {"OrderNo": "A"}}

    def test_strict_config(self):
        template = "<script>return undefined_name</script>"

        assert TemplateRenderer().render(template).text == "undefined_name"
        assert TemplateRenderer(EngineConfig(strict=True)).render(template).text == ""

    def test_diagnostics_are_reported_per_block(self):
        result = TemplateRenderer().render("<script>x = 1 @\nreturn 2</script>")

        assert result.text == "2"
        assert result.diagnostics == [
            "Script 1: Unrecognized character '@' at line 1, column 7"
        ]

    def test_manual_render(self):
        result = TemplateRenderer().render(
            LABEL, CONTEXT, {"SortCode": "S01"}, mode=RenderMode.MANUAL
        )

        assert result.mode == RenderMode.MANUAL
        assert "script" not in result.text.lower()
        assert "^FDS01^FS" in result.text
        assert len(result.warnings) == 2
        assert result.block_results == []

    def test_validator_runs_on_final_markup(self):
        validator = FakeValidator()

        result = TemplateRenderer(validator=validator).render("^XA<script>return 1</script>")

        assert validator.seen == ["^XA1"]
        assert not result.validation.valid
        assert result.to_dict()["validation"] == {
            "valid": False,
            "diagnostics": [{"message": "Missing ^XZ", "line": 1, "severity": "error"}],
        }

    def test_to_dict(self):
        data = TemplateRenderer().render("<script>return 1</script>").to_dict()

        assert data["text"] == "1"
        assert data["mode"] == "auto"
        assert data["success"] is True
        assert data["blocks"][0]["output"] == "1"
        assert data["validation"] is None


class TestPreview:
    def test_preview(self):
        raster = FakeRasterRenderer()
        renderer = TemplateRenderer(raster_renderer=raster)

        result, image = renderer.preview("^XA<script>return 1</script>^XZ", size=LabelSize(50, 25, 12))

        assert image == b"PNG"
        assert result.text == "^XA1^XZ"
        assert raster.calls == [("^XA1^XZ", 50, 25, 12)]

    def test_preview_without_renderer(self):
        with pytest.raises(RendererUnavailableError):
            TemplateRenderer().preview("^XA^XZ")

    def test_preview_renderer_failure(self):
        renderer = TemplateRenderer(raster_renderer=FakeRasterRenderer(fail=True))

        with pytest.raises(RenderServiceError, match="service down"):
            renderer.preview("^XA^XZ")
