"""Recursive-descent parser building ``lark.Tree`` nodes.

Grammar::

    program     -> declaration* EOF
    declaration -> class_decl | fun_decl | var_decl | statement
    class_decl  -> "class" IDENT ( "<" IDENT )? "{" function* "}"
    fun_decl    -> "fun" function
    function    -> IDENT "(" parameters? ")" block
    var_decl    -> "var" IDENT ( "=" expression )? ";"
    statement   -> expr_stmt | for_stmt | if_stmt | print_stmt
                 | return_stmt | while_stmt | block
    for_stmt    -> "for" "(" ( var_decl | expr_stmt | ";" )
                   expression? ";" expression? ")" statement
    expression  -> assignment
    assignment  -> ( call "." )? IDENT "=" assignment | logic_or
    logic_or    -> logic_and ( "or" logic_and )*
    logic_and   -> equality ( "and" equality )*
    equality    -> comparison ( ( "!=" | "==" ) comparison )*
    comparison  -> term ( ( ">" | ">=" | "<" | "<=" ) term )*
    term        -> factor ( ( "-" | "+" ) factor )*
    factor      -> unary ( ( "/" | "*" ) unary )*
    unary       -> ( "!" | "-" ) unary | call
    call        -> primary ( "(" arguments? ")" | "." IDENT )*
    primary     -> "true" | "false" | "nil" | "this" | NUMBER | STRING
                 | IDENT | "(" expression ")" | "super" "." IDENT
                 | "fun" "(" parameters? ")" block

Every node records the line and column of the token that introduced it in
``tree.meta``.
"""

from typing import Iterable, List, Optional, Tuple

from lark import Token, Tree

from .exceptions import LoxSyntaxError
from .lexer import Lexer, error_message, literal_value
from .results import Diagnostic

MAX_ARGS = 255

SYNC_KEYWORDS = frozenset(
    {"CLASS", "FUN", "VAR", "FOR", "IF", "WHILE", "PRINT", "RETURN"}
)


def node(data: str, children: list, token: Token) -> Tree:
    tree = Tree(data, children)
    tree.meta.line = token.line
    tree.meta.column = token.column
    tree.meta.empty = False
    return tree


class Parser:
    def __init__(self, tokens: Iterable[Token]):
        self._tokens = iter(tokens)
        self._lookahead: List[Token] = []
        self._previous: Optional[Token] = None
        self.errors: List[Diagnostic] = []

    def parse(self) -> Tree:
        start = self._peek()
        statements = []
        while not self._is_at_end():
            stmt = self._declaration()
            if stmt is not None:
                statements.append(stmt)
        return node("program", statements, start)

    # --- Token stream ---

    def _pull(self) -> Token:
        token = next(self._tokens)
        while token.type == "ERROR":
            self.errors.append(
                Diagnostic(token.line, f"Error: {error_message(token)}", token.column)
            )
            token = next(self._tokens)
        return token

    def _peek(self, offset: int = 0) -> Token:
        while len(self._lookahead) <= offset:
            if self._lookahead and self._lookahead[-1].type == "EOF":
                return self._lookahead[-1]
            self._lookahead.append(self._pull())
        return self._lookahead[offset]

    def _is_at_end(self) -> bool:
        return self._peek().type == "EOF"

    def _advance(self) -> Token:
        token = self._peek()
        if token.type != "EOF":
            self._lookahead.pop(0)
        self._previous = token
        return token

    def _check(self, *kinds: str) -> bool:
        return self._peek().type in kinds

    def _match(self, *kinds: str) -> Optional[Token]:
        if self._check(*kinds):
            return self._advance()
        return None

    def _consume(self, kind: str, message: str) -> Token:
        if self._check(kind):
            return self._advance()
        raise self._error(self._peek(), message)

    def _error(self, token: Token, message: str) -> LoxSyntaxError:
        where = "at end" if token.type == "EOF" else f"at '{token}'"
        self.errors.append(
            Diagnostic(token.line, f"Error {where}: {message}", token.column)
        )
        return LoxSyntaxError(token, message)

    def _synchronize(self) -> None:
        self._advance()
        while not self._is_at_end():
            if self._previous.type == "SEMICOLON":
                return
            if self._peek().type in SYNC_KEYWORDS:
                return
            self._advance()

    # --- Declarations ---

    def _declaration(self) -> Optional[Tree]:
        try:
            if self._check("CLASS"):
                return self._class_declaration()
            if self._check("FUN") and self._peek(1).type == "IDENTIFIER":
                self._advance()
                return self._function("fun_decl", "function")
            if self._check("VAR"):
                return self._var_declaration()
            return self._statement()
        except LoxSyntaxError:
            self._synchronize()
            return None

    def _class_declaration(self) -> Tree:
        keyword = self._advance()
        name = self._consume("IDENTIFIER", "Expect class name.")
        superclass = None
        if self._match("LESS"):
            super_name = self._consume("IDENTIFIER", "Expect superclass name.")
            superclass = node("variable", [super_name], super_name)
        self._consume("LEFT_BRACE", "Expect '{' before class body.")
        methods = []
        while not self._check("RIGHT_BRACE") and not self._is_at_end():
            methods.append(self._function("fun_decl", "method"))
        self._consume("RIGHT_BRACE", "Expect '}' after class body.")
        return node("class_decl", [name, superclass, Tree("methods", methods)], keyword)

    def _function(self, data: str, kind: str) -> Tree:
        name = self._consume("IDENTIFIER", f"Expect {kind} name.")
        params, body = self._function_tail(kind)
        return node(data, [name, params, body], name)

    def _function_tail(self, kind: str) -> Tuple[Tree, Tree]:
        paren = self._consume("LEFT_PAREN", f"Expect '(' after {kind} name.")
        params = []
        if not self._check("RIGHT_PAREN"):
            while True:
                if len(params) >= MAX_ARGS:
                    self._error(self._peek(), f"Can't have more than {MAX_ARGS} parameters.")
                params.append(self._consume("IDENTIFIER", "Expect parameter name."))
                if not self._match("COMMA"):
                    break
        self._consume("RIGHT_PAREN", "Expect ')' after parameters.")
        brace = self._consume("LEFT_BRACE", f"Expect '{{' before {kind} body.")
        body = node("block", self._block(), brace)
        return node("parameters", params, paren), body

    def _var_declaration(self) -> Tree:
        keyword = self._advance()
        name = self._consume("IDENTIFIER", "Expect variable name.")
        initializer = self._expression() if self._match("EQUAL") else None
        self._consume("SEMICOLON", "Expect ';' after variable declaration.")
        return node("var_decl", [name, initializer], keyword)

    # --- Statements ---

    def _statement(self) -> Tree:
        if self._check("FOR"):
            return self._for_statement()
        if self._check("IF"):
            return self._if_statement()
        if self._check("PRINT"):
            keyword = self._advance()
            value = self._expression()
            self._consume("SEMICOLON", "Expect ';' after value.")
            return node("print_stmt", [value], keyword)
        if self._check("RETURN"):
            return self._return_statement()
        if self._check("WHILE"):
            keyword = self._advance()
            self._consume("LEFT_PAREN", "Expect '(' after 'while'.")
            condition = self._expression()
            self._consume("RIGHT_PAREN", "Expect ')' after condition.")
            return node("while_stmt", [condition, self._statement()], keyword)
        if self._check("LEFT_BRACE"):
            brace = self._advance()
            return node("block", self._block(), brace)
        return self._expression_statement()

    def _for_statement(self) -> Tree:
        keyword = self._advance()
        self._consume("LEFT_PAREN", "Expect '(' after 'for'.")
        if self._match("SEMICOLON"):
            initializer = None
        elif self._check("VAR"):
            initializer = self._var_declaration()
        else:
            initializer = self._expression_statement()

        condition = None if self._check("SEMICOLON") else self._expression()
        self._consume("SEMICOLON", "Expect ';' after loop condition.")
        increment = None if self._check("RIGHT_PAREN") else self._expression()
        self._consume("RIGHT_PAREN", "Expect ')' after for clauses.")

        body = self._statement()
        if increment is not None:
            body = node("block", [body, node("expr_stmt", [increment], keyword)], keyword)
        if condition is None:
            condition = node("literal", [True], keyword)
        loop = node("while_stmt", [condition, body], keyword)
        if initializer is not None:
            loop = node("block", [initializer, loop], keyword)
        return loop

    def _if_statement(self) -> Tree:
        keyword = self._advance()
        self._consume("LEFT_PAREN", "Expect '(' after 'if'.")
        condition = self._expression()
        self._consume("RIGHT_PAREN", "Expect ')' after if condition.")
        then_branch = self._statement()
        else_branch = self._statement() if self._match("ELSE") else None
        return node("if_stmt", [condition, then_branch, else_branch], keyword)

    def _return_statement(self) -> Tree:
        keyword = self._advance()
        value = None if self._check("SEMICOLON") else self._expression()
        self._consume("SEMICOLON", "Expect ';' after return value.")
        return node("return_stmt", [keyword, value], keyword)

    def _expression_statement(self) -> Tree:
        start = self._peek()
        expr = self._expression()
        self._consume("SEMICOLON", "Expect ';' after expression.")
        return node("expr_stmt", [expr], start)

    def _block(self) -> List[Tree]:
        statements = []
        while not self._check("RIGHT_BRACE") and not self._is_at_end():
            stmt = self._declaration()
            if stmt is not None:
                statements.append(stmt)
        self._consume("RIGHT_BRACE", "Expect '}' after block.")
        return statements

    # --- Expressions ---

    def _expression(self) -> Tree:
        return self._assignment()

    def _assignment(self) -> Tree:
        expr = self._or()
        equals = self._match("EQUAL")
        if equals is None:
            return expr

        value = self._assignment()
        if expr.data == "variable":
            name = expr.children[0]
            return node("assign", [name, value], name)
        if expr.data == "get_prop":
            obj, name = expr.children
            return node("set_prop", [obj, name, value], name)
        # Reported without panicking: the parser is not confused.
        self._error(equals, "Invalid assignment target.")
        return expr

    def _or(self) -> Tree:
        expr = self._and()
        while self._check("OR"):
            operator = self._advance()
            expr = node("logical", [expr, operator, self._and()], operator)
        return expr

    def _and(self) -> Tree:
        expr = self._equality()
        while self._check("AND"):
            operator = self._advance()
            expr = node("logical", [expr, operator, self._equality()], operator)
        return expr

    def _binary(self, operand, *operators: str) -> Tree:
        expr = operand()
        while self._check(*operators):
            operator = self._advance()
            expr = node("binary", [expr, operator, operand()], operator)
        return expr

    def _equality(self) -> Tree:
        return self._binary(self._comparison, "BANG_EQUAL", "EQUAL_EQUAL")

    def _comparison(self) -> Tree:
        return self._binary(
            self._term, "GREATER", "GREATER_EQUAL", "LESS", "LESS_EQUAL"
        )

    def _term(self) -> Tree:
        return self._binary(self._factor, "MINUS", "PLUS")

    def _factor(self) -> Tree:
        return self._binary(self._unary, "SLASH", "STAR")

    def _unary(self) -> Tree:
        if self._check("BANG", "MINUS"):
            operator = self._advance()
            return node("unary", [operator, self._unary()], operator)
        return self._call()

    def _call(self) -> Tree:
        expr = self._primary()
        while True:
            if self._check("LEFT_PAREN"):
                expr = self._finish_call(expr)
            elif self._match("DOT"):
                name = self._consume("IDENTIFIER", "Expect property name after '.'.")
                expr = node("get_prop", [expr, name], name)
            else:
                return expr

    def _finish_call(self, callee: Tree) -> Tree:
        self._advance()
        args = []
        if not self._check("RIGHT_PAREN"):
            while True:
                if len(args) >= MAX_ARGS:
                    self._error(self._peek(), f"Can't have more than {MAX_ARGS} arguments.")
                args.append(self._expression())
                if not self._match("COMMA"):
                    break
        paren = self._consume("RIGHT_PAREN", "Expect ')' after arguments.")
        return node("call", [callee, paren, Tree("arguments", args)], paren)

    def _primary(self) -> Tree:
        token = self._peek()
        kind = token.type

        if kind in ("FALSE", "TRUE", "NIL", "NUMBER", "STRING"):
            self._advance()
            return node("literal", [literal_value(token)], token)
        if kind == "THIS":
            self._advance()
            return node("this_expr", [token], token)
        if kind == "SUPER":
            self._advance()
            self._consume("DOT", "Expect '.' after 'super'.")
            method = self._consume("IDENTIFIER", "Expect superclass method name.")
            return node("super_expr", [token, method], token)
        if kind == "IDENTIFIER":
            self._advance()
            return node("variable", [token], token)
        if kind == "FUN":
            self._advance()
            params, body = self._function_tail("function")
            return node("function_expr", [params, body], token)
        if kind == "LEFT_PAREN":
            self._advance()
            expr = self._expression()
            self._consume("RIGHT_PAREN", "Expect ')' after expression.")
            return node("grouping", [expr], token)

        raise self._error(token, "Expect expression.")


def parse(source: str) -> Tuple[Tree, List[Diagnostic]]:
    """Parse ``source``; the tree is only safe to run when the error list is empty."""
    parser = Parser(Lexer(source))
    program = parser.parse()
    return program, parser.errors
