"""Static scope resolution.

Walks a parsed program once, without running it, and records for every
local variable use how many scopes separate it from its declaration. Names
that are not found in any enclosing local scope are left out of the table and
looked up in the globals at run time, which is what lets top-level functions
refer to each other before they are declared.
"""

from typing import Dict, List, Optional, Set

from lark import Token, Tree
from lark.visitors import Interpreter

from .exceptions import LoxError
from .results import Diagnostic

NO_FUNCTION = "none"
FUNCTION = "function"
METHOD = "method"
INITIALIZER = "initializer"

NO_CLASS = "none"
CLASS = "class"
SUBCLASS = "subclass"


class Resolver(Interpreter):
    def __init__(self):
        self.locals: Dict[int, int] = {}
        self.errors: List[Diagnostic] = []
        self._scopes: List[Dict[str, bool]] = []
        # Superclass name of every class declared per scope, globals first.
        self._lineage: List[Dict[str, Optional[str]]] = [{}]
        self._function = NO_FUNCTION
        self._class = NO_CLASS

    def resolve(self, program: Tree) -> List[Diagnostic]:
        self.visit(program)
        return self.errors

    def __default__(self, tree):
        raise LoxError(f"Resolver has no rule for node '{tree.data}'")

    # --- Bookkeeping ---

    def _error(self, token: Token, message: str) -> None:
        self.errors.append(
            Diagnostic(token.line, f"Error at '{token}': {message}", token.column)
        )

    def _begin_scope(self) -> None:
        self._scopes.append({})
        self._lineage.append({})

    def _end_scope(self) -> None:
        self._scopes.pop()
        self._lineage.pop()

    def _declare(self, name: Token) -> None:
        if not self._scopes:
            return
        scope = self._scopes[-1]
        if name in scope:
            self._error(name, "Already a variable with this name in this scope.")
        scope[str(name)] = False

    def _define(self, name: Token) -> None:
        if self._scopes:
            self._scopes[-1][str(name)] = True

    def _resolve_local(self, tree: Tree, name: str) -> None:
        for hops, scope in enumerate(reversed(self._scopes)):
            if name in scope:
                self.locals[id(tree)] = hops
                return

    def _resolve_function(self, params: Tree, body: Tree, kind: str) -> None:
        enclosing = self._function
        self._function = kind
        self._begin_scope()
        for param in params.children:
            self._declare(param)
            self._define(param)
        # The body shares the parameters' scope.
        for stmt in body.children:
            self.visit(stmt)
        self._end_scope()
        self._function = enclosing

    def _superclass_of(self, name: str) -> Optional[str]:
        for classes in reversed(self._lineage):
            if name in classes:
                return classes[name]
        return None

    def _inherits_from_itself(self, name: str, superclass: str) -> bool:
        seen: Set[str] = set()
        current: Optional[str] = superclass
        while current is not None and current not in seen:
            if current == name:
                return True
            seen.add(current)
            current = self._superclass_of(current)
        return False

    # --- Statements ---

    def program(self, tree):
        for stmt in tree.children:
            self.visit(stmt)

    def block(self, tree):
        self._begin_scope()
        for stmt in tree.children:
            self.visit(stmt)
        self._end_scope()

    def var_decl(self, tree):
        name, initializer = tree.children
        self._declare(name)
        if initializer is not None:
            self.visit(initializer)
        self._define(name)

    def fun_decl(self, tree):
        name, params, body = tree.children
        self._declare(name)
        self._define(name)
        self._resolve_function(params, body, FUNCTION)

    def class_decl(self, tree):
        name, superclass, methods = tree.children
        enclosing = self._class
        self._class = CLASS

        self._declare(name)
        self._define(name)

        super_name = None
        if superclass is not None:
            super_name = str(superclass.children[0])
            if self._inherits_from_itself(str(name), super_name):
                self._error(superclass.children[0], "A class can't inherit from itself.")
            self._class = SUBCLASS
            self.visit(superclass)
        self._lineage[-1][str(name)] = super_name

        if self._class == SUBCLASS:
            self._begin_scope()
            self._scopes[-1]["super"] = True

        self._begin_scope()
        self._scopes[-1]["this"] = True
        for method in methods.children:
            method_name, params, body = method.children
            kind = INITIALIZER if method_name == "init" else METHOD
            self._resolve_function(params, body, kind)
        self._end_scope()

        if self._class == SUBCLASS:
            self._end_scope()
        self._class = enclosing

    def expr_stmt(self, tree):
        self.visit(tree.children[0])

    def print_stmt(self, tree):
        self.visit(tree.children[0])

    def if_stmt(self, tree):
        condition, then_branch, else_branch = tree.children
        self.visit(condition)
        self.visit(then_branch)
        if else_branch is not None:
            self.visit(else_branch)

    def while_stmt(self, tree):
        condition, body = tree.children
        self.visit(condition)
        self.visit(body)

    def return_stmt(self, tree):
        keyword, value = tree.children
        if self._function == NO_FUNCTION:
            self._error(keyword, "Can't return from top-level code.")
        if value is not None:
            if self._function == INITIALIZER:
                self._error(keyword, "Can't return a value from an initializer.")
            self.visit(value)

    # --- Expressions ---

    def variable(self, tree):
        name = tree.children[0]
        if self._scopes and self._scopes[-1].get(str(name)) is False:
            self._error(name, "Can't read local variable in its own initializer.")
        self._resolve_local(tree, str(name))

    def assign(self, tree):
        name, value = tree.children
        self.visit(value)
        self._resolve_local(tree, str(name))

    def binary(self, tree):
        left, _, right = tree.children
        self.visit(left)
        self.visit(right)

    def logical(self, tree):
        left, _, right = tree.children
        self.visit(left)
        self.visit(right)

    def unary(self, tree):
        self.visit(tree.children[1])

    def grouping(self, tree):
        self.visit(tree.children[0])

    def literal(self, tree):
        pass

    def call(self, tree):
        callee, _, arguments = tree.children
        self.visit(callee)
        for arg in arguments.children:
            self.visit(arg)

    def get_prop(self, tree):
        self.visit(tree.children[0])

    def set_prop(self, tree):
        obj, _, value = tree.children
        self.visit(value)
        self.visit(obj)

    def this_expr(self, tree):
        keyword = tree.children[0]
        if self._class == NO_CLASS:
            self._error(keyword, "Can't use 'this' outside of a class.")
            return
        self._resolve_local(tree, "this")

    def super_expr(self, tree):
        keyword = tree.children[0]
        if self._class == NO_CLASS:
            self._error(keyword, "Can't use 'super' outside of a class.")
        elif self._class != SUBCLASS:
            self._error(keyword, "Can't use 'super' in a class with no superclass.")
        self._resolve_local(tree, "super")

    def function_expr(self, tree):
        params, body = tree.children
        self._resolve_function(params, body, FUNCTION)
