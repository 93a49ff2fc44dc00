import logging
import math
import operator
import sys
from typing import Any, Dict, List, Optional

from lark import Token, Tree
from lark.visitors import Interpreter

from .exceptions import LoxError, LoxRuntimeError
from .interfaces import ConsoleSink, OutputSink
from .models import (
    LoxCallable,
    LoxClass,
    LoxFunction,
    LoxInstance,
    NativeFunction,
    ReturnValue,
    RunConfig,
)
from .scope import Environment
from .stdlib import StdLib
from .types import TypeCanon

logger = logging.getLogger(__name__)

# Rough count of host frames consumed by one level of Lox calls.
_FRAMES_PER_CALL = 25

_NUMERIC = {
    "MINUS": operator.sub,
    "STAR": operator.mul,
    "GREATER": operator.gt,
    "GREATER_EQUAL": operator.ge,
    "LESS": operator.lt,
    "LESS_EQUAL": operator.le,
}


def _divide(left: float, right: float) -> float:
    # IEEE-754 semantics instead of ZeroDivisionError.
    if right != 0:
        return left / right
    if math.isnan(left) or left == 0:
        return math.nan
    return math.copysign(math.inf, left) * math.copysign(1.0, right)


class LoxInterpreter(Interpreter):
    def __init__(
        self,
        sink: Optional[OutputSink] = None,
        stdlib: Optional[StdLib] = None,
        config: Optional[RunConfig] = None,
    ):
        self.sink = sink if sink is not None else ConsoleSink()
        self.stdlib = stdlib if stdlib is not None else StdLib()
        self.config = config if config is not None else RunConfig()

        self.globals = Environment()
        self.stdlib.register_into(self.globals)
        self.environment = self.globals

        self.locals: Dict[int, int] = {}
        # Resolved programs stay referenced so the ids keying ``locals`` are never reused.
        self._programs: List[Tree] = []
        self._call_depth = 0
        # Line of the top-level statement being executed.
        self.current_line = 0

        try:
            sys.setrecursionlimit(
                max(
                    sys.getrecursionlimit(),
                    self.config.max_call_depth * _FRAMES_PER_CALL + 1000,
                )
            )
        except Exception:
            pass

    def bind_locals(self, program: Tree, resolved: Dict[int, int]) -> None:
        self._programs.append(program)
        self.locals.update(resolved)

    def interpret(self, program: Tree) -> None:
        self.environment = self.globals
        self._call_depth = 0
        self.current_line = 0
        self.visit(program)

    def __default__(self, tree):
        raise LoxError(f"Interpreter has no rule for node '{tree.data}'")

    # --- Statements ---

    def program(self, tree):
        for stmt in tree.children:
            self.current_line = stmt.meta.line
            self.visit(stmt)

    def execute_block(self, statements: List[Tree], environment: Environment):
        previous = self.environment
        self.environment = environment
        try:
            for stmt in statements:
                result = self.visit(stmt)
                if isinstance(result, ReturnValue):
                    return result
            return None
        finally:
            self.environment = previous

    def block(self, tree):
        return self.execute_block(tree.children, Environment(self.environment))

    def expr_stmt(self, tree):
        self.visit(tree.children[0])

    def print_stmt(self, tree):
        value = self.visit(tree.children[0])
        self._emit(TypeCanon.stringify(value) + "\n", tree)

    def _emit(self, text: str, tree: Tree) -> None:
        try:
            self.sink.write(text)
            self.sink.flush()
        except Exception as e:
            token = Token("PRINT", "print", None, tree.meta.line, tree.meta.column)
            raise LoxRuntimeError(token, f"Could not write output: {e}") from e

    def var_decl(self, tree):
        name, initializer = tree.children
        value = self.visit(initializer) if initializer is not None else None
        self.environment.define(str(name), value)

    def if_stmt(self, tree):
        condition, then_branch, else_branch = tree.children
        if TypeCanon.is_truthy(self.visit(condition)):
            return self.visit(then_branch)
        if else_branch is not None:
            return self.visit(else_branch)
        return None

    def while_stmt(self, tree):
        condition, body = tree.children
        while TypeCanon.is_truthy(self.visit(condition)):
            result = self.visit(body)
            if isinstance(result, ReturnValue):
                return result
        return None

    def fun_decl(self, tree):
        name, params, body = tree.children
        function = LoxFunction(str(name), params.children, body, self.environment)
        self.environment.define(str(name), function)

    def return_stmt(self, tree):
        _, value = tree.children
        return ReturnValue(self.visit(value) if value is not None else None)

    def class_decl(self, tree):
        name, superclass_node, methods = tree.children
        superclass = None
        if superclass_node is not None:
            superclass = self.visit(superclass_node)
            if not isinstance(superclass, LoxClass):
                raise LoxRuntimeError(
                    superclass_node.children[0], "Superclass must be a class."
                )

        self.environment.define(str(name), None)
        if superclass is not None:
            self.environment = Environment(self.environment)
            self.environment.define("super", superclass)

        table = {}
        for method in methods.children:
            method_name, params, body = method.children
            table[str(method_name)] = LoxFunction(
                str(method_name),
                params.children,
                body,
                self.environment,
                is_initializer=method_name == "init",
            )
        klass = LoxClass(str(name), superclass, table)
        logger.debug("Defined class %s (superclass %s)", klass, superclass)

        if superclass is not None:
            self.environment = self.environment.enclosing
        self.environment.assign(name, klass)

    # --- Calls ---

    def call(self, tree):
        callee_node, paren, arguments = tree.children
        callee = self.visit(callee_node)
        args = [self.visit(arg) for arg in arguments.children]

        if not isinstance(callee, LoxCallable):
            raise LoxRuntimeError(paren, "Can only call functions and classes.")
        if len(args) != callee.arity:
            raise LoxRuntimeError(
                paren, f"Expected {callee.arity} arguments but got {len(args)}."
            )
        return self.invoke(callee, args, paren)

    def invoke(self, callee: LoxCallable, args: List[Any], paren: Token) -> Any:
        if self._call_depth >= self.config.max_call_depth:
            raise LoxRuntimeError(paren, "Stack overflow.")

        self._call_depth += 1
        try:
            if isinstance(callee, LoxClass):
                return self._instantiate(callee, args)
            if isinstance(callee, LoxFunction):
                return self._invoke_user_function(callee, args)
            if isinstance(callee, NativeFunction):
                return self._invoke_native_function(callee, args, paren)
            raise LoxRuntimeError(paren, "Can only call functions and classes.")
        except RecursionError as e:
            raise LoxRuntimeError(paren, "Stack overflow.") from e
        finally:
            self._call_depth -= 1

    def _invoke_user_function(self, func: LoxFunction, args: List[Any]) -> Any:
        environment = Environment(func.closure)
        for param, arg in zip(func.params, args):
            environment.define(str(param), arg)

        result = self.execute_block(func.body.children, environment)
        if func.is_initializer:
            return func.closure.get_at(0, "this")
        if isinstance(result, ReturnValue):
            return result.value
        return None

    def _invoke_native_function(
        self, func: NativeFunction, args: List[Any], paren: Token
    ) -> Any:
        try:
            return func.func(*args)
        except LoxError:
            raise
        except Exception as e:
            raise LoxRuntimeError(
                paren, f"Native function '{func.name}' failed: {e}."
            ) from e

    def _instantiate(self, klass: LoxClass, args: List[Any]) -> LoxInstance:
        instance = LoxInstance(klass)
        initializer = klass.find_method("init")
        if initializer is not None:
            self._invoke_user_function(initializer.bind(instance), args)
        return instance

    # --- Variables ---

    def _lookup_variable(self, name: Token, tree: Tree) -> Any:
        distance = self.locals.get(id(tree))
        if distance is not None:
            return self.environment.get_at(distance, name)
        return self.globals.get(name)

    def variable(self, tree):
        return self._lookup_variable(tree.children[0], tree)

    def assign(self, tree):
        name, value_node = tree.children
        value = self.visit(value_node)
        distance = self.locals.get(id(tree))
        if distance is not None:
            self.environment.assign_at(distance, name, value)
        else:
            self.globals.assign(name, value)
        return value

    def this_expr(self, tree):
        return self._lookup_variable(tree.children[0], tree)

    def super_expr(self, tree):
        keyword, method_name = tree.children
        distance = self.locals[id(tree)]
        superclass = self.environment.get_at(distance, "super")
        instance = self.environment.get_at(distance - 1, "this")
        method = superclass.find_method(method_name)
        if method is None:
            raise LoxRuntimeError(method_name, f"Undefined property '{method_name}'.")
        return method.bind(instance)

    # --- Properties ---

    def get_prop(self, tree):
        obj_node, name = tree.children
        obj = self.visit(obj_node)
        if isinstance(obj, LoxInstance):
            return obj.get(name)
        raise LoxRuntimeError(name, "Only instances have properties.")

    def set_prop(self, tree):
        obj_node, name, value_node = tree.children
        obj = self.visit(obj_node)
        if not isinstance(obj, LoxInstance):
            raise LoxRuntimeError(name, "Only instances have fields.")
        value = self.visit(value_node)
        obj.set(name, value)
        return value

    # --- Expressions & Atoms ---

    def literal(self, tree):
        return tree.children[0]

    def grouping(self, tree):
        return self.visit(tree.children[0])

    def function_expr(self, tree):
        params, body = tree.children
        return LoxFunction(None, params.children, body, self.environment)

    def logical(self, tree):
        left_node, op, right_node = tree.children
        left = self.visit(left_node)
        if op.type == "OR":
            if TypeCanon.is_truthy(left):
                return left
        elif not TypeCanon.is_truthy(left):
            return left
        return self.visit(right_node)

    def unary(self, tree):
        op, right_node = tree.children
        right = self.visit(right_node)
        if op.type == "BANG":
            return not TypeCanon.is_truthy(right)
        if not isinstance(right, float):
            raise LoxRuntimeError(op, "Operand must be a number.")
        return -right

    def binary(self, tree):
        left_node, op, right_node = tree.children
        left = self.visit(left_node)
        right = self.visit(right_node)
        kind = op.type

        if kind == "EQUAL_EQUAL":
            return TypeCanon.are_equal(left, right)
        if kind == "BANG_EQUAL":
            return not TypeCanon.are_equal(left, right)
        if kind == "PLUS":
            if isinstance(left, float) and isinstance(right, float):
                return left + right
            if isinstance(left, str) and isinstance(right, str):
                return left + right
            raise LoxRuntimeError(op, "Operands must be two numbers or two strings.")

        if not (isinstance(left, float) and isinstance(right, float)):
            raise LoxRuntimeError(op, "Operands must be numbers.")
        if kind == "SLASH":
            return _divide(left, right)
        return _NUMERIC[kind](left, right)
