"""Parser tests — precedence climbing, prototypes, top-level units."""

import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from kaleido.ast_nodes import (
    ANON_FUNCTION_NAME,
    BinaryExpr,
    CallExpr,
    Function,
    NumberExpr,
    Prototype,
    VariableExpr,
)
from kaleido.errors import ErrorKind
from kaleido.lexer import Lexer, TokenType
from kaleido.parser import DEFAULT_PRECEDENCE, OperatorPrecedence, Parser


def make_parser(source, precedence=None):
    return Parser(Lexer(source), precedence)


def parse_expr(source, precedence=None):
    parser = make_parser(source, precedence)
    result = parser.parse_expression()
    assert result.ok, result.error
    return result.value


def shape(expr):
    """Compact s-expression rendering for structural assertions."""
    if isinstance(expr, NumberExpr):
        return repr(expr.value)
    if isinstance(expr, VariableExpr):
        return expr.name
    if isinstance(expr, BinaryExpr):
        return f"({expr.op} {shape(expr.lhs)} {shape(expr.rhs)})"
    if isinstance(expr, CallExpr):
        return f"{expr.callee}[{' '.join(shape(a) for a in expr.args)}]"
    raise AssertionError(expr)


# ===================================================================
# Primary expressions
# ===================================================================


class TestPrimary:

    def test_number(self):
        expr = parse_expr("4.5")
        assert isinstance(expr, NumberExpr)
        assert expr.value == 4.5

    def test_variable(self):
        expr = parse_expr("x")
        assert isinstance(expr, VariableExpr)
        assert expr.name == "x"

    def test_call_with_arguments(self):
        assert shape(parse_expr("foo(1, x, bar(y))")) == "foo[1.0 x bar[y]]"

    def test_call_without_arguments(self):
        expr = parse_expr("foo()")
        assert isinstance(expr, CallExpr)
        assert expr.args == []

    def test_missing_comma_in_call(self):
        parser = make_parser("foo(1 2)")
        result = parser.parse_expression()
        assert not result.ok
        assert result.error.kind == ErrorKind.SYNTAX_ERROR
        assert "argument list" in result.error.message

    def test_unclosed_paren(self):
        parser = make_parser("(1 + 2")
        result = parser.parse_expression()
        assert not result.ok
        assert result.error.message == "expected ')'"

    def test_unknown_token(self):
        parser = make_parser(")")
        result = parser.parse_primary()
        assert not result.ok
        assert result.error.message == "unknown token when expecting an expression"
        assert parser.errors == [result.error]

    def test_keyword_is_not_an_expression(self):
        result = make_parser("def").parse_expression()
        assert not result.ok

    def test_errors_reach_callback(self):
        seen = []
        parser = Parser(Lexer(";"), on_error=seen.append)
        parser.parse_expression()
        assert len(seen) == 1
        assert seen[0].details["found"] == ";"


# ===================================================================
# Binary expressions
# ===================================================================


class TestPrecedenceClimbing:

    def test_multiplication_binds_tighter(self):
        assert shape(parse_expr("1+2*3")) == "(+ 1.0 (* 2.0 3.0))"

    def test_parentheses_override(self):
        assert shape(parse_expr("(1+2)*3")) == "(* (+ 1.0 2.0) 3.0)"

    def test_equal_precedence_is_left_associative(self):
        assert shape(parse_expr("a-b-c")) == "(- (- a b) c)"
        assert shape(parse_expr("a+b-c")) == "(- (+ a b) c)"

    def test_mixed_chain(self):
        assert shape(parse_expr("a<b+c*d-e")) == "(< a (- (+ b (* c d)) e))"

    def test_higher_then_lower(self):
        assert shape(parse_expr("a*b+c")) == "(+ (* a b) c)"

    def test_stops_at_non_operator(self):
        parser = make_parser("a+b )")
        result = parser.parse_expression()
        assert shape(result.value) == "(+ a b)"
        assert parser.current.is_char(")")

    def test_unknown_operator_ends_expression(self):
        parser = make_parser("a/b")
        assert shape(parser.parse_expression().value) == "a"
        assert parser.current.is_char("/")

    def test_custom_precedence(self):
        table = OperatorPrecedence({"/": 40, "+": 50})
        assert shape(parse_expr("a/b+c", table)) == "(/ a (+ b c))"

    def test_missing_rhs_fails(self):
        result = make_parser("1 +").parse_expression()
        assert not result.ok

    def test_end_to_end_sum_of_squares(self):
        assert shape(parse_expr("a*a + b*b")) == "(+ (* a a) (* b b))"


class TestPrecedenceTable:

    def test_defaults(self):
        table = OperatorPrecedence()
        assert table.as_dict() == dict(DEFAULT_PRECEDENCE)
        assert table["*"] == 40

    def test_absent_or_non_positive_is_not_an_operator(self):
        table = OperatorPrecedence({"-": 0})
        assert table["-"] == -1
        assert table["%"] == -1
        assert "-" not in table
        assert "+" in table

    def test_table_is_read_only(self):
        table = OperatorPrecedence()
        with pytest.raises(TypeError):
            table._table["/"] = 5

    def test_non_char_tokens_have_no_precedence(self):
        table = OperatorPrecedence()
        tok = Lexer("x").next_token()
        assert tok.type == TokenType.IDENT
        assert table.of(tok) == -1


_ops = st.sampled_from(sorted(DEFAULT_PRECEDENCE))


class TestAssociativityProperties:

    @given(_ops, _ops)
    @settings(max_examples=100)
    def test_descending_or_equal_precedence_groups_left(self, op1, op2):
        """a OP1 b OP2 c == (a OP1 b) OP2 c when prec(OP1) >= prec(OP2)."""
        assume(DEFAULT_PRECEDENCE[op1] >= DEFAULT_PRECEDENCE[op2])
        assert shape(parse_expr(f"a{op1}b{op2}c")) == f"({op2} ({op1} a b) c)"

    @given(_ops, _ops)
    @settings(max_examples=100)
    def test_ascending_precedence_groups_right(self, op1, op2):
        """a OP1 b OP2 c == a OP1 (b OP2 c) when prec(OP1) < prec(OP2)."""
        assume(DEFAULT_PRECEDENCE[op1] < DEFAULT_PRECEDENCE[op2])
        assert shape(parse_expr(f"a{op1}b{op2}c")) == f"({op1} a ({op2} b c))"

    @given(st.dictionaries(st.sampled_from("+-*<"), st.integers(min_value=1, max_value=100),
                           min_size=4, max_size=4),
           _ops, _ops)
    @settings(max_examples=100)
    def test_holds_for_any_positive_table(self, prec, op1, op2):
        table = OperatorPrecedence(prec)
        tree = shape(parse_expr(f"a{op1}b{op2}c", table))
        if prec[op1] >= prec[op2]:
            assert tree == f"({op2} ({op1} a b) c)"
        else:
            assert tree == f"({op1} a ({op2} b c))"


# ===================================================================
# Prototypes and top-level units
# ===================================================================


class TestPrototype:

    def test_parameters(self):
        result = make_parser("foo(x y)").parse_prototype()
        assert result.ok
        assert result.value.name == "foo"
        assert result.value.params == ["x", "y"]

    def test_no_parameters(self):
        assert make_parser("foo()").parse_prototype().value.params == []

    def test_missing_close_paren_fails(self):
        result = make_parser("foo(x y").parse_prototype()
        assert not result.ok
        assert result.value is None
        assert result.error.message == "Expected ')' in prototype"

    def test_missing_name(self):
        result = make_parser("(x)").parse_prototype()
        assert result.error.message == "Expected function name in prototype"

    def test_missing_open_paren(self):
        result = make_parser("foo x").parse_prototype()
        assert result.error.message == "Expected '(' in prototype"

    def test_comma_separated_params_rejected(self):
        result = make_parser("foo(x, y)").parse_prototype()
        assert not result.ok

    def test_duplicate_params_accepted_by_parser(self):
        assert make_parser("foo(x x)").parse_prototype().value.params == ["x", "x"]


class TestTopLevelUnits:

    def test_definition(self):
        result = make_parser("def foo(a b) a*a + b*b;").parse_definition()
        assert result.ok
        func = result.value
        assert isinstance(func, Function)
        assert func.proto.name == "foo"
        assert func.proto.params == ["a", "b"]
        assert shape(func.body) == "(+ (* a a) (* b b))"

    def test_definition_without_body_fails(self):
        assert not make_parser("def foo(a)").parse_definition().ok

    def test_extern(self):
        result = make_parser("extern sin(x)").parse_extern()
        assert isinstance(result.value, Prototype)
        assert str(result.value) == "sin(x)"

    def test_top_level_expression_is_anonymous_function(self):
        result = make_parser("1 + 2").parse_top_level_expr()
        func = result.value
        assert func.proto.name == ANON_FUNCTION_NAME
        assert func.proto.params == []
        assert func.proto.is_anonymous
        assert shape(func.body) == "(+ 1.0 2.0)"

    def test_to_dict(self):
        func = make_parser("def f(x) g(x) < 2").parse_definition().value
        assert func.to_dict() == {
            "node": "function",
            "proto": {"node": "prototype", "name": "f", "params": ["x"]},
            "body": {
                "node": "binary",
                "op": "<",
                "lhs": {"node": "call", "callee": "g",
                        "args": [{"node": "variable", "name": "x"}]},
                "rhs": {"node": "number", "value": 2.0},
            },
        }
