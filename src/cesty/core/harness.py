"""C source of a standalone program running a single test function.

The program is the file's mainless environment followed by a generated
``main`` that calls the test. A non-zero return value means the test passed.
Nothing is written to disk or compiled here.
"""

from cesty.models import ParsedFile, ParsedTest

_PROGRAM = """{environment}

int main(void) {{
{call}
}}
"""


def _call(test: ParsedTest) -> str:
    name = test.function.name
    if test.function.returns == "void":
        return f"    {name}();\n    return 0;"
    return f"    return {name}() ? 0 : 1;"


def render_test_program(parsed_file: ParsedFile, test: ParsedTest) -> str:
    if test.function.args:
        raise ValueError(
            f"test `{test.function.name}` takes arguments ({', '.join(test.function.args)}) "
            "and cannot be called from a generated main()"
        )
    return _PROGRAM.format(environment=parsed_file.environment.mainless.rstrip("\n"), call=_call(test))


def render_test_programs(parsed_file: ParsedFile) -> dict[str, str]:
    """Programs keyed by test file stem, skipping tests that take arguments."""
    programs = {}
    for test in parsed_file.tests:
        if test.function.args:
            continue
        programs[parsed_file.test_file_stem(test)] = render_test_program(parsed_file, test)
    return programs
