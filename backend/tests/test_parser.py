"""Tests for the label-scripting parser."""

import pytest

from labelforge.scripting import ParseError, parse_expression, parse_script
from labelforge.scripting.parser import (
    AssignStatement,
    BinaryOp,
    Comparison,
    Concat,
    DimStatement,
    ForStatement,
    FunctionCall,
    IfStatement,
    Logical,
    MemberCall,
    Missing,
    Name,
    Not,
    NumberLiteral,
    PropertyAccess,
    ReturnStatement,
    StringLiteral,
    UnaryOp,
    UnknownStatement,
    Verbatim,
    logical_lines,
    split_arguments,
    split_concatenation,
)


class TestTextHelpers:
    def test_split_concatenation_ignores_quoted_ampersand(self):
        assert split_concatenation('"A & B" & x') == ['"A & B"', "x"]

    def test_split_concatenation_does_not_respect_parentheses(self):
        assert split_concatenation('left(a & b, 1)') == ["left(a", "b, 1)"]

    def test_split_arguments_respects_nesting_and_quotes(self):
        assert split_arguments('a, left(b, 2), "c, d"') == ["a", "left(b, 2)", '"c, d"']

    def test_split_arguments_keeps_empty_middle_arguments(self):
        assert split_arguments("x,,,-1") == ["x", "", "", "-1"]

    def test_split_arguments_empty(self):
        assert split_arguments("  ") == []


class TestExpressionDetectionOrder:
    """The first structural match wins."""

    def test_empty_expression(self):
        assert parse_expression("  ") == StringLiteral("")

    def test_concatenation_first(self):
        node = parse_expression('"A" & "B"')
        assert node == Concat([StringLiteral("A"), StringLiteral("B")])

    def test_string_literal(self):
        assert parse_expression('"Hello = World"') == StringLiteral("Hello = World")

    def test_string_literal_with_doubled_quotes(self):
        # Only the outer quotes are stripped
        assert parse_expression('"a""b"') == StringLiteral('a""b')
        assert parse_expression('""""') == StringLiteral('""')

    def test_quoted_operands_are_not_one_literal(self):
        node = parse_expression('"a" = "b"')
        assert node == Comparison("=", StringLiteral("a"), StringLiteral("b"))

    def test_comparison_operators_in_fixed_order(self):
        assert parse_expression("a <> 1").operator == "<>"
        assert parse_expression("a >= 1").operator == ">="
        assert parse_expression("a <= 1").operator == "<="
        assert parse_expression("a = 1").operator == "="
        assert parse_expression("a > 1").operator == ">"
        assert parse_expression("a < 1").operator == "<"

    def test_comparison_ignores_quoted_operators(self):
        node = parse_expression('x = "a<b"')
        assert node == Comparison("=", Name("x"), StringLiteral("a<b"))

    def test_comparison_before_logical(self):
        # Splits at the first "=": a = (1 and b = 2) = ((1 and b) = 2)
        node = parse_expression("a = 1 and b = 2")
        assert isinstance(node, Comparison)
        assert node.left == Name("a")
        assert node.right == Comparison(
            "=", Logical("and", [NumberLiteral(1), Name("b")]), NumberLiteral(2)
        )

    def test_malformed_comparison(self):
        with pytest.raises(ParseError):
            parse_expression("= 1")

    def test_logical_and_or(self):
        assert parse_expression("a and b") == Logical("and", [Name("a"), Name("b")])
        assert parse_expression("a AndAlso b") == Logical("and", [Name("a"), Name("b")])
        assert parse_expression("a or b or c") == Logical("or", [Name("a"), Name("b"), Name("c")])

    def test_logical_keyword_inside_identifier_is_not_an_operator(self):
        assert parse_expression("Shipment.OrderNo") == PropertyAccess("Shipment.OrderNo")
        assert parse_expression("brand") == Name("brand")

    def test_not(self):
        assert parse_expression("not x") == Not(Name("x"))

    def test_arithmetic_precedence(self):
        node = parse_expression("1 + 2 * 3")
        assert node == BinaryOp(
            "+", NumberLiteral(1), BinaryOp("*", NumberLiteral(2), NumberLiteral(3))
        )

    def test_arithmetic_parentheses(self):
        node = parse_expression("(1 + 2) * 3")
        assert node == BinaryOp(
            "*", BinaryOp("+", NumberLiteral(1), NumberLiteral(2)), NumberLiteral(3)
        )

    def test_arithmetic_mod_and_unary(self):
        assert parse_expression("i mod 2") == BinaryOp("mod", Name("i"), NumberLiteral(2))
        assert parse_expression("-1") == UnaryOp("-", NumberLiteral(1))

    def test_arithmetic_with_paths_and_calls(self):
        node = parse_expression("Parcel.Weight * 2 + len(x)")
        assert node == BinaryOp(
            "+",
            BinaryOp("*", PropertyAccess("Parcel.Weight"), NumberLiteral(2)),
            FunctionCall("len", [Name("x")]),
        )

    def test_quoted_minus_is_not_arithmetic(self):
        node = parse_expression('format(now(), "yyyy-MM-dd")')
        assert node == FunctionCall(
            "format", [FunctionCall("now", []), StringLiteral("yyyy-MM-dd")]
        )

    def test_function_call_with_missing_arguments(self):
        node = parse_expression("formatnumber(x,,,1)")
        assert node == FunctionCall(
            "formatnumber", [Name("x"), Missing(), Missing(), NumberLiteral(1)]
        )

    def test_member_call(self):
        node = parse_expression('Shipment.Attributes("SortCode")')
        assert node == MemberCall("Shipment.Attributes", [StringLiteral("SortCode")])

    def test_call_must_span_whole_expression(self):
        assert not isinstance(parse_expression("f(a) (b)"), FunctionCall)

    def test_property_access_number_name_verbatim(self):
        assert parse_expression("Shipment.Receiver.City") == PropertyAccess("Shipment.Receiver.City")
        assert parse_expression("3.5") == NumberLiteral(3.5)
        assert parse_expression("42") == NumberLiteral(42)
        assert parse_expression("total") == Name("total")
        assert parse_expression("^FO50,50") == Verbatim("^FO50,50")


class TestLogicalLines:
    def test_blank_and_comment_lines_are_dropped(self):
        lines = logical_lines("\n  ' comment\nREM note\n  dim x  \n\nreturn x ' trailing")

        assert [(l.text, l.number) for l in lines] == [("dim x", 4), ("return x", 6)]

    def test_single_line_if_is_expanded(self):
        lines = logical_lines('if 1 = 1 then return "X" else return "Y" end if')

        assert [l.text for l in lines] == [
            "if 1 = 1 then",
            'return "X"',
            "else",
            'return "Y"',
            "end if",
        ]

    def test_single_line_if_without_end_if_is_closed(self):
        lines = logical_lines('if a then x = "then"')
        assert [l.text for l in lines] == ["if a then", 'x = "then"', "end if"]

    def test_block_if_header_is_left_alone(self):
        lines = logical_lines("if a then\nelse\nend if")
        assert [l.text for l in lines] == ["if a then", "else", "end if"]


class TestStatements:
    def test_return_dim_assign(self):
        script = parse_script('dim x As String = "a"\ndim y\nx = x & "b"\nreturn x')

        assert script.body == [
            DimStatement("x", StringLiteral("a"), 1),
            DimStatement("y", None, 2),
            AssignStatement("x", Concat([Name("x"), StringLiteral("b")]), 3),
            ReturnStatement(Name("x"), 4),
        ]

    def test_bare_return(self):
        assert parse_script("return").body == [ReturnStatement(StringLiteral(""), 1)]

    def test_if_elseif_else(self):
        script = parse_script(
            'if a = 1 then\nreturn "one"\nelseif a = 2 then\nreturn "two"\nelse\nreturn "many"\nend if'
        )

        node = script.body[0]
        assert isinstance(node, IfStatement)
        assert len(node.branches) == 2
        assert node.branches[1].body == [ReturnStatement(StringLiteral("two"), 4)]
        assert node.else_body == [ReturnStatement(StringLiteral("many"), 6)]

    def test_nested_if(self):
        script = parse_script("if a then\nif b then\nreturn 1\nend if\nreturn 2\nend if")

        outer = script.body[0]
        assert isinstance(outer.branches[0].body[0], IfStatement)
        assert outer.branches[0].body[1] == ReturnStatement(NumberLiteral(2), 5)

    def test_for_loop(self):
        script = parse_script("for i = 1 to 3\nreturn i\nnext")

        assert script.body == [
            ForStatement(
                "i", NumberLiteral(1), NumberLiteral(3), [ReturnStatement(Name("i"), 2)], 1
            )
        ]

    def test_unknown_statement(self):
        script = parse_script("call something")
        assert script.body == [UnknownStatement("call something", 1)]

    def test_if_without_then(self):
        with pytest.raises(ParseError) as exc:
            parse_script("if a = 1\nreturn 1\nend if")
        assert exc.value.line == 1

    def test_if_without_end_if(self):
        with pytest.raises(ParseError) as exc:
            parse_script("if a = 1 then\nreturn 1")
        assert "end if" in str(exc.value)

    def test_for_without_next(self):
        with pytest.raises(ParseError) as exc:
            parse_script("for i = 1 to 3\nreturn i")
        assert "next" in str(exc.value)

    def test_expression_errors_carry_line_numbers(self):
        with pytest.raises(ParseError) as exc:
            parse_script('dim x\nreturn "a" = ')
        assert exc.value.line == 2
