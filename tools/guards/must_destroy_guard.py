"""Flag MustDestroy guards that a scope creates but never destroys or hands off.

This is a lexical check: a guard bound to a name counts as handled once the
same scope calls a consuming method on it, or uses the name in any other way
(returning, yielding, passing or storing it moves ownership elsewhere).
"""
from __future__ import annotations

import ast
import sys
from collections.abc import Iterable, Iterator
from pathlib import Path

GUARD_NAME = "MustDestroy"
CONSUMING = frozenset({"destroy", "destroy_with", "into_inner", "transfer"})
NESTED_SCOPES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef, ast.Lambda)

Scope = ast.Module | ast.FunctionDef | ast.AsyncFunctionDef
NestedScope = ast.FunctionDef | ast.AsyncFunctionDef | ast.ClassDef | ast.Lambda


def iter_python_files(roots: Iterable[str]) -> Iterable[Path]:
    for root in roots:
        base = Path(root)
        if not base.exists():
            continue
        if base.is_file():
            yield base
            continue
        yield from base.rglob("*.py")


def is_guard_call(node: ast.AST | None) -> bool:
    if not isinstance(node, ast.Call):
        return False
    func = node.func
    if isinstance(func, ast.Name):
        return func.id == GUARD_NAME
    return isinstance(func, ast.Attribute) and func.attr == GUARD_NAME


def scope_body(scope: Scope | NestedScope) -> list[ast.AST]:
    if isinstance(scope, ast.Lambda):
        return [scope.body]
    return list(scope.body)


def iter_scope(scope: Scope | NestedScope) -> Iterator[ast.AST]:
    """Walk a scope without descending into nested functions or classes."""
    stack = scope_body(scope)
    while stack:
        node = stack.pop()
        if isinstance(node, NESTED_SCOPES):
            continue
        yield node
        stack.extend(ast.iter_child_nodes(node))


def guard_bindings(scope: Scope) -> list[tuple[str, int]]:
    bindings: list[tuple[str, int]] = []
    for node in iter_scope(scope):
        if isinstance(node, (ast.Assign, ast.AnnAssign)) and is_guard_call(node.value):
            targets = node.targets if isinstance(node, ast.Assign) else [node.target]
            bindings.extend(
                (t.id, node.lineno) for t in targets if isinstance(t, ast.Name)
            )
        if isinstance(node, (ast.With, ast.AsyncWith)):
            bindings.extend(
                (item.optional_vars.id, node.lineno)
                for item in node.items
                if is_guard_call(item.context_expr)
                and isinstance(item.optional_vars, ast.Name)
            )
    return bindings


def nested_scopes(scope: Scope | NestedScope) -> Iterator[NestedScope]:
    """Yield the functions, lambdas and classes defined directly in a scope."""
    stack = scope_body(scope)
    while stack:
        node = stack.pop()
        if isinstance(node, NESTED_SCOPES):
            yield node
            continue
        stack.extend(ast.iter_child_nodes(node))


def binds_locally(scope: NestedScope, name: str) -> bool:
    """True when `name` inside `scope` refers to a local, not the outer binding."""
    body = list(iter_scope(scope))
    if any(
        isinstance(node, (ast.Global, ast.Nonlocal)) and name in node.names
        for node in body
    ):
        return False
    if not isinstance(scope, ast.ClassDef):
        args = scope.args
        params = [*args.posonlyargs, *args.args, *args.kwonlyargs]
        params.extend(a for a in (args.vararg, args.kwarg) if a is not None)
        if any(param.arg == name for param in params):
            return True
    return any(
        isinstance(node, ast.Name)
        and node.id == name
        and isinstance(node.ctx, (ast.Store, ast.Del))
        for node in body
    )


def iter_loads(scope: Scope | NestedScope, name: str) -> Iterator[ast.Name]:
    """Loads of `name` in a scope and in nested scopes that close over it."""
    for node in iter_scope(scope):
        if (
            isinstance(node, ast.Name)
            and node.id == name
            and isinstance(node.ctx, ast.Load)
        ):
            yield node
    for nested in nested_scopes(scope):
        if not binds_locally(nested, name):
            yield from iter_loads(nested, name)


def is_handled(scope: Scope, name: str, parents: dict[ast.AST, ast.AST]) -> bool:
    for node in iter_loads(scope, name):
        parent = parents.get(node)
        if isinstance(parent, ast.Attribute):
            if parent.attr in CONSUMING:
                return True
            # Plain attribute reads such as guard.value do not move the guard.
            continue
        return True
    return False


def check_tree(tree: ast.Module, path: Path) -> list[str]:
    errors: list[str] = []
    parents = {
        child: node for node in ast.walk(tree) for child in ast.iter_child_nodes(node)
    }
    scopes: list[Scope] = [tree]
    scopes.extend(
        node
        for node in ast.walk(tree)
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))
    )
    for scope in scopes:
        for node in iter_scope(scope):
            if isinstance(node, ast.Expr) and is_guard_call(node.value):
                errors.append(f"{path}:{node.lineno} {GUARD_NAME} dropped immediately")
        for name, lineno in guard_bindings(scope):
            if not is_handled(scope, name, parents):
                errors.append(
                    f"{path}:{lineno} {GUARD_NAME} bound to '{name}' is never destroyed"
                    " or handed off"
                )
    return errors


def check_path(path: Path) -> list[str]:
    try:
        text = path.read_text(encoding="utf-8")
        tree = ast.parse(text, filename=str(path))
    except Exception as exc:  # pragma: no cover - guard must not crash silently
        sys.stderr.write(f"{path}: PARSE_ERROR {exc}\n")
        raise
    return check_tree(tree, path)


def run(roots: list[str]) -> int:
    all_errors: list[str] = []
    for path in iter_python_files(roots):
        all_errors.extend(check_path(path))
    if all_errors:
        sys.stderr.write("\n".join(all_errors) + "\n")
        return 1
    return 0


def main() -> int:
    return run(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main())
