from __future__ import annotations
import io
import math
import unittest
from unittest.mock import patch

from lark import Token, Tree

import lox_lang
from lox_lang.lexer import error_message


class RecordingSink(lox_lang.OutputSink):
    def __init__(self):
        self.writes: list[str] = []
        self.flushes = 0

    def write(self, text: str) -> int:
        self.writes.append(text)
        return len(text)

    def flush(self) -> None:
        self.flushes += 1


class FailingSink(lox_lang.OutputSink):
    def write(self, text: str) -> int:
        raise OSError("disk full")

    def flush(self) -> None:
        pass


def _name(text: str, line: int = 1) -> Token:
    return Token("IDENTIFIER", text, 0, line, 1)


class LexerTests(unittest.TestCase):
    def _types(self, source: str) -> list[str]:
        return [t.type for t in lox_lang.tokenize(source)]

    def test_punctuation_and_operators(self) -> None:
        self.assertEqual(
            self._types("(){},.-+;/*! != = == < <= > >="),
            [
                "LEFT_PAREN", "RIGHT_PAREN", "LEFT_BRACE", "RIGHT_BRACE",
                "COMMA", "DOT", "MINUS", "PLUS", "SEMICOLON", "SLASH", "STAR",
                "BANG", "BANG_EQUAL", "EQUAL", "EQUAL_EQUAL", "LESS",
                "LESS_EQUAL", "GREATER", "GREATER_EQUAL", "EOF",
            ],
        )

    def test_keywords_need_whole_words(self) -> None:
        self.assertEqual(
            self._types("or orchid _x1 nil"),
            ["OR", "IDENTIFIER", "IDENTIFIER", "NIL", "EOF"],
        )

    def test_number_literals(self) -> None:
        tokens = lox_lang.tokenize("12.345 123.")
        self.assertEqual(
            [(t.type, str(t)) for t in tokens],
            [("NUMBER", "12.345"), ("NUMBER", "123"), ("DOT", "."), ("EOF", "")],
        )
        self.assertEqual(lox_lang.literal_value(tokens[0]), 12.345)

    def test_string_literal_value(self) -> None:
        token = lox_lang.tokenize('"hi there"')[0]
        self.assertEqual(token.type, "STRING")
        self.assertEqual(lox_lang.literal_value(token), "hi there")

    def test_comments_skipped_and_lines_counted(self) -> None:
        tokens = lox_lang.tokenize("var a; // note\nprint a;\n")
        self.assertEqual([t.line for t in tokens], [1, 1, 1, 2, 2, 2, 3])
        self.assertNotIn("note", [str(t) for t in tokens])

    def test_multiline_string_advances_line(self) -> None:
        string, ident, _ = lox_lang.tokenize('"a\nb" x')
        self.assertEqual((string.line, string.column), (1, 1))
        self.assertEqual((ident.line, ident.column), (2, 4))

    def test_columns(self) -> None:
        self.assertEqual([t.column for t in lox_lang.tokenize("print 1;")], [1, 7, 8, 9])

    def test_errors_become_tokens(self) -> None:
        tokens = lox_lang.tokenize('@ "open')
        self.assertEqual([t.type for t in tokens], ["ERROR", "ERROR", "EOF"])
        self.assertEqual(error_message(tokens[0]), "Unexpected character '@'.")
        self.assertEqual(error_message(tokens[1]), "Unterminated string.")

    def test_lexer_is_single_use(self) -> None:
        lexer = lox_lang.Lexer("1")
        self.assertEqual(len(list(lexer)), 2)
        self.assertEqual(list(lexer), [])


class ParserTests(unittest.TestCase):
    def _messages(self, source: str) -> list[str]:
        _, errors = lox_lang.parse(source)
        return [d.message for d in errors]

    def test_invalid_assignment_target_does_not_panic(self) -> None:
        program, errors = lox_lang.parse("1 = 2; print 3;")
        self.assertEqual([d.message for d in errors], ["Error at '=': Invalid assignment target."])
        self.assertEqual([s.data for s in program.children], ["expr_stmt", "print_stmt"])

    def test_property_assignment_becomes_set(self) -> None:
        program, errors = lox_lang.parse("a.b.c = 1;")
        self.assertEqual(errors, [])
        target = program.children[0].children[0]
        self.assertEqual(target.data, "set_prop")
        self.assertEqual(target.children[0].data, "get_prop")
        self.assertEqual(target.children[1], "c")

    def test_for_loop_desugaring(self) -> None:
        program, errors = lox_lang.parse("for (var i = 0; i < 3; i = i + 1) print i;")
        self.assertEqual(errors, [])
        outer = program.children[0]
        self.assertEqual(outer.data, "block")
        self.assertEqual([c.data for c in outer.children], ["var_decl", "while_stmt"])
        body = outer.children[1].children[1]
        self.assertEqual([c.data for c in body.children], ["print_stmt", "expr_stmt"])

    def test_empty_for_clauses_loop_forever(self) -> None:
        program, errors = lox_lang.parse("for (;;) print 1;")
        self.assertEqual(errors, [])
        loop = program.children[0]
        self.assertEqual(loop.data, "while_stmt")
        self.assertEqual(loop.children[0].children, [True])

    def test_nodes_carry_positions(self) -> None:
        program, _ = lox_lang.parse("\n\n  print 1;")
        stmt = program.children[0]
        self.assertEqual((stmt.meta.line, stmt.meta.column), (3, 3))

    def test_argument_limit(self) -> None:
        args = ", ".join(["1"] * 256)
        self.assertEqual(
            self._messages(f"f({args});"),
            ["Error at '1': Can't have more than 255 arguments."],
        )

    def test_errors_at_end_of_input(self) -> None:
        self.assertEqual(self._messages("print 1"), ["Error at end: Expect ';' after value."])
        self.assertEqual(self._messages("{ print 1;"), ["Error at end: Expect '}' after block."])

    def test_fun_keyword_starts_expression_when_anonymous(self) -> None:
        program, errors = lox_lang.parse("fun () {}();")
        self.assertEqual(errors, [])
        call = program.children[0].children[0]
        self.assertEqual(call.data, "call")
        self.assertEqual(call.children[0].data, "function_expr")


class ResolverTests(unittest.TestCase):
    def _resolve(self, source: str) -> tuple[Tree, lox_lang.Resolver, list[str]]:
        program, errors = lox_lang.parse(source)
        self.assertEqual(errors, [])
        resolver = lox_lang.Resolver()
        messages = [d.message for d in resolver.resolve(program)]
        return program, resolver, messages

    def test_local_depth_is_recorded(self) -> None:
        program, resolver, messages = self._resolve("{ var a = 1; { print a; } }")
        self.assertEqual(messages, [])
        use = next(program.find_data("variable"))
        self.assertEqual(resolver.locals[id(use)], 1)

    def test_globals_are_left_dynamic(self) -> None:
        program, resolver, _ = self._resolve("var g = 1; print g;")
        use = next(program.find_data("variable"))
        self.assertNotIn(id(use), resolver.locals)

    def test_inheritance_cycle_through_redefinition(self) -> None:
        _, _, messages = self._resolve("class A {}\nclass B < A {}\nclass A < B {}")
        self.assertEqual(messages, ["Error at 'B': A class can't inherit from itself."])

    def test_this_outside_class(self) -> None:
        _, _, messages = self._resolve("fun f() { return this; }")
        self.assertEqual(messages, ["Error at 'this': Can't use 'this' outside of a class."])

    def test_super_rules(self) -> None:
        _, _, messages = self._resolve("class A { m() { super.m(); } }")
        self.assertEqual(
            messages, ["Error at 'super': Can't use 'super' in a class with no superclass."]
        )
        _, _, messages = self._resolve("super.x;")
        self.assertEqual(messages, ["Error at 'super': Can't use 'super' outside of a class."])

    def test_initializer_cannot_return_value(self) -> None:
        _, _, messages = self._resolve("class A { init() { return 1; } }")
        self.assertEqual(
            messages, ["Error at 'return': Can't return a value from an initializer."]
        )

    def test_redeclaring_global_is_allowed(self) -> None:
        _, _, messages = self._resolve("var a = 1; var a = 2;")
        self.assertEqual(messages, [])


class EnvironmentTests(unittest.TestCase):
    def test_define_get_assign(self) -> None:
        env = lox_lang.Environment()
        env.define("g", 1.0)
        child = lox_lang.Environment(env)
        self.assertEqual(child.get(_name("g")), 1.0)
        child.assign(_name("g"), 2.0)
        self.assertEqual(env.values["g"], 2.0)

    def test_undefined_name_raises(self) -> None:
        env = lox_lang.Environment()
        with self.assertRaises(lox_lang.LoxRuntimeError) as ctx:
            env.get(_name("missing", line=4))
        self.assertEqual(ctx.exception.message, "Undefined variable 'missing'.")
        self.assertEqual(ctx.exception.line, 4)
        with self.assertRaises(lox_lang.LoxRuntimeError):
            env.assign(_name("missing"), 1.0)

    def test_ancestor_access(self) -> None:
        root = lox_lang.Environment()
        root.define("x", "root")
        leaf = lox_lang.Environment(lox_lang.Environment(root))
        leaf.define("x", "leaf")
        self.assertIs(leaf.ancestor(2), root)
        self.assertEqual(leaf.get_at(2, "x"), "root")
        leaf.assign_at(2, "x", "changed")
        self.assertEqual(root.values["x"], "changed")
        self.assertEqual(leaf.get(_name("x")), "leaf")


class ValueTests(unittest.TestCase):
    def test_truthiness(self) -> None:
        self.assertFalse(lox_lang.TypeCanon.is_truthy(None))
        self.assertFalse(lox_lang.TypeCanon.is_truthy(False))
        self.assertTrue(lox_lang.TypeCanon.is_truthy(0.0))
        self.assertTrue(lox_lang.TypeCanon.is_truthy(""))

    def test_equality_never_crosses_kinds(self) -> None:
        eq = lox_lang.TypeCanon.are_equal
        self.assertFalse(eq(1.0, True))
        self.assertFalse(eq(None, False))
        self.assertTrue(eq(None, None))
        self.assertTrue(eq("a", "a"))
        self.assertFalse(eq("1", 1.0))

    def test_number_formatting(self) -> None:
        fmt = lox_lang.TypeCanon.format_number
        self.assertEqual(fmt(3.0), "3")
        self.assertEqual(fmt(2.5), "2.5")
        self.assertEqual(fmt(-0.0), "-0")
        self.assertEqual(fmt(math.inf), "inf")
        self.assertEqual(fmt(-math.inf), "-inf")
        self.assertEqual(fmt(math.nan), "NaN")

    def test_number_formatting_never_uses_exponents(self) -> None:
        fmt = lox_lang.TypeCanon.format_number
        self.assertEqual(fmt(1e-07), "0.0000001")
        self.assertEqual(fmt(-0.00025), "-0.00025")
        self.assertEqual(fmt(1e21), "1000000000000000000000")
        self.assertEqual(fmt(0.1 + 0.2), "0.30000000000000004")
        self.assertEqual(fmt(100.0), "100")
        self.assertEqual(fmt(0.0), "0")

    def test_kind_names(self) -> None:
        kind = lox_lang.TypeCanon.get_type_of_value
        self.assertEqual(kind(None), "nil")
        self.assertEqual(kind(True), "boolean")
        self.assertEqual(kind(1.0), "number")
        self.assertEqual(kind("s"), "string")
        klass = lox_lang.LoxClass("Thing")
        self.assertEqual(kind(klass), "callable")
        self.assertEqual(kind(lox_lang.LoxInstance(klass)), "instance")
        with self.assertRaises(TypeError):
            kind(object())

    def test_class_arity_follows_initializer(self) -> None:
        program, _ = lox_lang.parse("fun init(a, b) {}")
        _, params, body = program.children[0].children
        init = lox_lang.LoxFunction("init", params.children, body, lox_lang.Environment(), True)
        base = lox_lang.LoxClass("Base", None, {"init": init})
        derived = lox_lang.LoxClass("Derived", base)
        self.assertEqual(derived.arity, 2)
        self.assertEqual(str(derived), "Derived")
        self.assertEqual(str(lox_lang.LoxInstance(derived)), "Derived instance")

    def test_stdlib_clock_is_injectable(self) -> None:
        env = lox_lang.Environment()
        lox_lang.StdLib(clock=lambda: 5).register_into(env)
        clock = env.values["clock"]
        self.assertIsInstance(clock, lox_lang.NativeFunction)
        self.assertEqual(clock.arity, 0)
        self.assertEqual(clock.func(), 5.0)
        self.assertIsInstance(clock.func(), float)

    def test_interpreter_rejects_unknown_nodes(self) -> None:
        with self.assertRaises(lox_lang.LoxError):
            lox_lang.LoxInterpreter(sink=RecordingSink()).visit(Tree("bogus", []))


class ConfigTests(unittest.TestCase):
    def test_from_env(self) -> None:
        config = lox_lang.RunConfig.from_env(
            {"LOX_DIAGNOSTICS": "sink", "LOX_MAX_CALL_DEPTH": "10"}
        )
        self.assertEqual(config.diagnostics, "sink")
        self.assertEqual(config.max_call_depth, 10)

    def test_defaults(self) -> None:
        config = lox_lang.RunConfig.from_env({})
        self.assertEqual(config, lox_lang.RunConfig())
        self.assertEqual(config.diagnostics, "result")
        self.assertEqual(config.max_call_depth, 1000)

    def test_invalid_values(self) -> None:
        with self.assertRaises(ValueError):
            lox_lang.RunConfig(diagnostics="loud")
        with self.assertRaises(ValueError):
            lox_lang.RunConfig(max_call_depth=0)
        with self.assertRaises(ValueError):
            lox_lang.RunConfig.from_env({"LOX_MAX_CALL_DEPTH": "zero"})


class SinkTests(unittest.TestCase):
    def test_console_sink_writes_to_stream(self) -> None:
        stream = io.StringIO()
        sink = lox_lang.ConsoleSink(stream)
        self.assertEqual(sink.write("abc"), 3)
        sink.flush()
        self.assertEqual(stream.getvalue(), "abc")

    def test_buffer_sink_clear(self) -> None:
        sink = lox_lang.BufferSink()
        sink.write("x")
        self.assertEqual(sink.getvalue(), "x")
        sink.clear()
        self.assertEqual(sink.getvalue(), "")

    def test_tee_sink_fans_out(self) -> None:
        a, b = RecordingSink(), RecordingSink()
        tee = lox_lang.TeeSink([a, b])
        self.assertEqual(tee.write("hi"), 2)
        tee.flush()
        self.assertEqual((a.writes, b.writes), (["hi"], ["hi"]))
        self.assertEqual((a.flushes, b.flushes), (1, 1))


class SessionTests(unittest.TestCase):
    def _run(self, source: str, **kwargs) -> tuple[lox_lang.LoxSession, lox_lang.RunResult]:
        session = lox_lang.LoxSession(**kwargs)
        return session, session.interpret(source)

    def _runtime_message(self, source: str) -> str:
        _, result = self._run(source)
        self.assertIsInstance(result, lox_lang.RuntimeFailure)
        return result.error.message

    def test_arithmetic_edge_values(self) -> None:
        session, result = self._run(
            "print 1 / 0; print -1 / 0; print 0 / 0; print 10 / 4; print 3.0; print -0;"
        )
        self.assertTrue(result.ok)
        self.assertEqual(session.out(), "inf\n-inf\nNaN\n2.5\n3\n-0\n")

    def test_equality_and_concatenation(self) -> None:
        session, _ = self._run(
            'print 1 == true; print nil == false; print "a" == "a"; '
            'print 1 == 1; print "1" == 1; print "foo" + "bar";'
        )
        self.assertEqual(session.out(), "false\nfalse\ntrue\ntrue\nfalse\nfoobar\n")

    def test_runtime_error_messages(self) -> None:
        cases = {
            "print y;": "Undefined variable 'y'.",
            "y = 1;": "Undefined variable 'y'.",
            '"str"();': "Can only call functions and classes.",
            'print -"a";': "Operand must be a number.",
            'print 1 < "a";': "Operands must be numbers.",
            "var n = 1; print n.x;": "Only instances have properties.",
            "var n = 1; n.x = 1;": "Only instances have fields.",
            "class A {} print A().missing;": "Undefined property 'missing'.",
            'var NotClass = "x"; class B < NotClass {}': "Superclass must be a class.",
            "class A { init(a) {} } A();": "Expected 1 arguments but got 0.",
        }
        for source, message in cases.items():
            with self.subTest(source=source):
                self.assertEqual(self._runtime_message(source), message)

    def test_fields_and_bound_methods(self) -> None:
        session, result = self._run(
            "class P { init(n) { this.n = n; } get() { return this.n; } }\n"
            "var m = P(7).get;\n"
            "print m();\n"
            "class Box {} var b = Box(); b.v = 1; print b.v;\n"
            'class A { m() { return 1; } } var a = A(); a.m = "field"; print a.m;\n'
        )
        self.assertTrue(result.ok)
        self.assertEqual(session.out(), "7\n1\nfield\n")

    def test_globals_persist_across_runs(self) -> None:
        session = lox_lang.LoxSession()
        session.interpret(
            "fun mk() { var c = 0; fun inc() { c = c + 1; return c; } return inc; }"
            " var i = mk(); var x = 1;"
        )
        result = session.interpret("print i(); print i(); print x;")
        self.assertTrue(result.ok)
        self.assertEqual(session.out(), "1\n2\n1\n")

    def test_failed_run_keeps_earlier_definitions(self) -> None:
        session = lox_lang.LoxSession()
        self.assertFalse(session.interpret("var a = 1; print a + nil;").ok)
        session.interpret("print a;")
        self.assertEqual(session.out(), "1\n")

    def test_static_errors_define_nothing(self) -> None:
        session = lox_lang.LoxSession()
        self.assertIsInstance(session.interpret("var z = 1; print ;"), lox_lang.SyntaxErrors)
        self.assertIsInstance(session.interpret("print z;"), lox_lang.RuntimeFailure)

    def test_reset_forgets_globals(self) -> None:
        session = lox_lang.LoxSession()
        session.interpret("var x = 1;")
        session.reset()
        result = session.interpret("print x;")
        self.assertIsInstance(result, lox_lang.RuntimeFailure)

    def test_out_and_clear(self) -> None:
        session, _ = self._run("print 1;")
        self.assertEqual(session.out(), "1\n")
        session.clear()
        self.assertEqual(session.out(), "")
        session.clear()
        self.assertEqual(session.out(), "")

    def test_diagnostics_in_result_mode_stay_out_of_output(self) -> None:
        session, result = self._run('print 1 + "a";')
        self.assertFalse(result.ok)
        self.assertEqual(session.out(), "")

    def test_diagnostics_in_sink_mode(self) -> None:
        config = lox_lang.RunConfig(diagnostics="sink")
        session, _ = self._run('print 1 + "a";', config=config)
        self.assertEqual(
            session.out(), "[line 1] Operands must be two numbers or two strings.\n"
        )
        session.clear()
        session.interpret("print ;")
        self.assertEqual(session.out(), "[line 1] Error at ';': Expect expression.\n")

    def test_host_sink_receives_each_print(self) -> None:
        sink = RecordingSink()
        session, _ = self._run("print 1; print 2;", sink=sink)
        self.assertEqual(sink.writes, ["1\n", "2\n"])
        self.assertEqual(sink.flushes, 2)
        self.assertEqual(session.out(), "1\n2\n")

    def test_small_numbers_print_positionally(self) -> None:
        session, result = self._run("print 0.0000001; print 1 / 8;")
        self.assertTrue(result.ok)
        self.assertEqual(session.out(), "0.0000001\n0.125\n")

    def test_runtime_errors_carry_columns(self) -> None:
        _, result = self._run('var s = "a";\nprint 1 + s;')
        self.assertIsInstance(result, lox_lang.RuntimeFailure)
        self.assertEqual((result.error.line, result.error.column), (2, 9))

    def test_host_recursion_outside_calls_reports_statement_line(self) -> None:
        def exhausted(tree):
            raise RecursionError("maximum recursion depth exceeded")

        session = lox_lang.LoxSession()
        with patch.object(session.interpreter, "binary", new=exhausted):
            result = session.interpret("print 1;\n\nprint 1 + 2;")
        self.assertIsInstance(result, lox_lang.RuntimeFailure)
        self.assertEqual(result.error.message, "Stack overflow.")
        self.assertEqual(result.error.line, 3)
        self.assertEqual(session.out(), "1\n")

    def test_sink_failure_is_a_runtime_error(self) -> None:
        _, result = self._run("print 1;", sink=FailingSink())
        self.assertIsInstance(result, lox_lang.RuntimeFailure)
        self.assertTrue(result.error.message.startswith("Could not write output"))
        self.assertEqual(result.error.line, 1)

    def test_clock_injection_and_arity(self) -> None:
        session, result = self._run("print clock();", clock=lambda: 42.0)
        self.assertTrue(result.ok)
        self.assertEqual(session.out(), "42\n")
        self.assertEqual(
            self._runtime_message("clock(1);"), "Expected 0 arguments but got 1."
        )

    def test_native_failure_is_reported(self) -> None:
        def broken() -> float:
            raise RuntimeError("boom")

        _, result = self._run("print clock();", clock=broken)
        self.assertIsInstance(result, lox_lang.RuntimeFailure)
        self.assertEqual(result.error.message, "Native function 'clock' failed: boom.")

    def test_check_does_not_run(self) -> None:
        session = lox_lang.LoxSession()
        self.assertIsInstance(session.check("print 1;"), lox_lang.Success)
        self.assertEqual(session.out(), "")
        self.assertIsInstance(session.check("return 1;"), lox_lang.ResolutionErrors)

    def test_module_level_interpret(self) -> None:
        sink = RecordingSink()
        result = lox_lang.interpret("print 1 + 2;", sink=sink)
        self.assertIsInstance(result, lox_lang.Success)
        self.assertEqual(sink.writes, ["3\n"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
