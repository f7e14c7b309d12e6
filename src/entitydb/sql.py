"""
SQL text helpers.

Placeholder handling is literal-aware: a `?` inside a quoted string literal
is never treated as a parameter marker.

- `count_placeholders()` - Count `?` markers outside literals
- `replace_placeholders()` - Rewrite `?` markers to a dialect marker
- `escape_percent()` - Escape `%` for pyformat drivers
- `quote_identifier()` - Quote table/column names and dotted paths
"""
import re
from collections.abc import Iterator

_LITERAL = re.compile(r"'(?:[^']|'')*'")


def iter_segments(sql: str) -> Iterator[tuple[bool, str]]:
    """Split SQL into (is_literal, text) segments.
    """
    pos = 0
    for m in _LITERAL.finditer(sql):
        if m.start() > pos:
            yield False, sql[pos:m.start()]
        yield True, m.group(0)
        pos = m.end()
    if pos < len(sql):
        yield False, sql[pos:]


def count_placeholders(sql: str) -> int:
    """Count positional `?` markers outside string literals.
    """
    return sum(text.count('?') for is_literal, text in iter_segments(sql) if not is_literal)


def replace_placeholders(sql: str, marker: str) -> str:
    """Replace `?` markers outside string literals with `marker`.

    Parameters
        sql: SQL query string using `?` markers
        marker: Dialect placeholder such as `%s`

    Returns
        SQL with converted placeholders
    """
    if not sql or '?' not in sql or marker == '?':
        return sql
    return ''.join(
        text if is_literal else text.replace('?', marker)
        for is_literal, text in iter_segments(sql)
    )


def escape_percent(sql: str) -> str:
    """Double every `%` so a pyformat driver reads it as a literal percent.

    The driver unescapes `%%` inside string literals too, so literals are
    not skipped.
    """
    return sql.replace('%', '%%')


def quote_identifier(identifier: str, quote_char: str = '"') -> str:
    """Safely quote a database identifier or a dotted path.

    `user.name` becomes `"user"."name"`. Segments that are already quoted
    are left alone so quoting is idempotent.

    Parameters
        identifier: Table or column name, optionally dotted
        quote_char: Identifier quote character of the dialect

    Returns
        Quoted identifier
    """
    parts = []
    for part in identifier.split('.'):
        if len(part) >= 2 and part[0] == quote_char and part[-1] == quote_char:
            parts.append(part)
        else:
            parts.append(quote_char + part.replace(quote_char, quote_char * 2) + quote_char)
    return '.'.join(parts)
